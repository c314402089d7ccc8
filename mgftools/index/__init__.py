from .base import IndexBase, IndexRecordBase
from .file_index import FileIndex, IndexRecord
from .accumulator import IndexAccumulator, TitleRegistry
