"""
Test configuration and fixtures for Launchpad Folders tests.
"""
import pytest

from launchpad_folders.core.folder import ApplicationItem, Folder, FolderReferenceItem, WebsiteItem
from launchpad_folders.core.blob_store import MemoryBlobStore
from launchpad_folders.core.storage import STORAGE_KEY, FolderStore


@pytest.fixture
def sample_folders():
    """
    Three folders: Work nests Projects, Personal stands alone.

    Work holds a website, an application and the reference to Projects.
    """
    return [
        Folder(
            id="work",
            name="Work",
            items=[
                WebsiteItem("w1", "GitHub", "https://github.com", last_used=300),
                ApplicationItem("w2", "Slack", "/Applications/Slack.app", last_used=100),
                FolderReferenceItem("w3", "Projects", "projects"),
            ],
            color="#FF0000",
            last_used=50,
        ),
        Folder(
            id="projects",
            name="Projects",
            items=[WebsiteItem("p1", "X", "https://x.com")],
        ),
        Folder(
            id="personal",
            name="Personal",
            items=[],
            last_used=900,
        ),
    ]


@pytest.fixture
def memory_blob_store():
    """Fixture providing an empty in-memory blob store."""
    return MemoryBlobStore()


@pytest.fixture
def store(memory_blob_store):
    """Fixture providing a folder store over an empty blob store."""
    return FolderStore(memory_blob_store)


@pytest.fixture
def seeded_blob_store(sample_folders):
    """Fixture providing a blob store already holding the sample folders."""
    return MemoryBlobStore({STORAGE_KEY: FolderStore.encode(sample_folders)})


@pytest.fixture
def seeded_store(seeded_blob_store):
    """Fixture providing a folder store over the sample folders."""
    return FolderStore(seeded_blob_store)


@pytest.fixture
def temp_data_dir(tmp_path):
    """Fixture providing a temporary data directory."""
    return tmp_path / "data"
