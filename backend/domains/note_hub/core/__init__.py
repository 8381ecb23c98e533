"""
核心层：数据模型、存储与搜索

- Note: 不可变的笔记数据类
- NoteFileStorage: 本地 JSON 文件的原子读写与损坏恢复
- NoteStore: 内存权威集合，唯一写入者
- search_notes: 标题/内容的子串搜索
"""

from .models import Note
from .persistence import NoteFileStorage
from .search import SearchHit, search_notes
from .store import NoteStore

__all__ = ['Note', 'NoteFileStorage', 'NoteStore', 'SearchHit', 'search_notes']
