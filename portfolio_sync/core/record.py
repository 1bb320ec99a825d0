"""
Record and snapshot data model for portfolio-sync.
"""
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

# Only one body representation is written per record
CONTENT_FIELDS = ('content_html', 'content')


@dataclass
class Record:
    """
    Fields shared by articles and projects.
    """
    id: str
    title: str
    date: Optional[str] = None
    cover: Optional[str] = None
    read_time: int = 1
    featured: bool = False
    content_html: Optional[str] = None
    content: Optional[List[Dict[str, Any]]] = None
    url: Optional[str] = None
    last_edited: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize in declaration order, leaving out the unused body field.
        """
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name in CONTENT_FIELDS and value is None:
                continue
            data[f.name] = value
        return data


@dataclass
class Article(Record):
    """
    A published article.
    """
    title_en: str = ''
    description: str = ''
    category: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    icon: Optional[str] = None


@dataclass
class Project(Record):
    """
    A published project.
    """
    summary: str = ''
    categories: List[str] = field(default_factory=list)
    preview_link: Optional[str] = None


@dataclass
class Snapshot:
    """
    The JSON document written once per sync run.
    """
    list_key: str
    records: List[Record]
    last_updated: str

    @property
    def count(self) -> int:
        return len(self.records)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'last_updated': self.last_updated,
            'count': self.count,
            self.list_key: [record.to_dict() for record in self.records],
        }
