"""
Document service for loading source files and splitting them into chunks
"""
import logging
from pathlib import Path
from typing import Iterable, List, Sequence, Union

from langchain_core.documents import Document
from langchain_text_splitters import RecursiveCharacterTextSplitter

from codeindex.exceptions import DirectoryNotFoundError

# Set up logging
logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

DEFAULT_EXTENSIONS = (".ts", ".js", ".md", ".tsx", ".jsx", ".map")


def iter_files(directory: Path, extensions: Sequence[str]) -> List[Path]:
    """Regular files under directory with an allowed suffix, in sorted order"""
    allowed = {ext.lower() for ext in extensions}
    return sorted(
        path for path in directory.rglob("*")
        if path.is_file() and path.suffix.lower() in allowed
    )


def load_directory(
    directory: Union[str, Path],
    extensions: Sequence[str] = DEFAULT_EXTENSIONS,
) -> List[Document]:
    """
    Load every eligible file under a directory as one Document.

    Args:
        directory: Root directory, walked recursively
        extensions: File suffixes to include

    Returns:
        Documents with metadata {"source": <file path>}

    Raises:
        DirectoryNotFoundError: If directory does not exist
    """
    root = Path(directory)
    if not root.is_dir():
        raise DirectoryNotFoundError(f"Directory not found: {directory}")

    docs = []
    for path in iter_files(root, extensions):
        try:
            text_content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"[DocumentService] Skipping unreadable file {path}: {str(e)}")
            continue
        docs.append(Document(page_content=text_content, metadata={"source": str(path)}))

    logger.info(f"[DocumentService] Loaded {len(docs)} document(s) from {directory}")
    return docs


class DocumentService:
    def __init__(self, chunk_size: int = 2000, chunk_overlap: int = 400):
        """Initialize document service"""
        if chunk_overlap >= chunk_size:
            raise ValueError(
                f"chunk_overlap ({chunk_overlap}) must be smaller than chunk_size ({chunk_size})"
            )
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.text_splitter = RecursiveCharacterTextSplitter(
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
        )

    def split(self, documents: Iterable[Document]) -> List[Document]:
        """
        Split documents into overlapping chunks.

        Each chunk keeps a copy of its parent document's metadata.
        """
        chunks = self.text_splitter.split_documents(list(documents))
        logger.info(f"[DocumentService] Split into {len(chunks)} chunk(s)")
        return chunks


def split_documents(
    documents: Iterable[Document],
    chunk_size: int = 2000,
    chunk_overlap: int = 400,
) -> List[Document]:
    return DocumentService(chunk_size=chunk_size, chunk_overlap=chunk_overlap).split(documents)
