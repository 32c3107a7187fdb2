"""
Unit tests for the folder data model.
"""

import pytest

from launchpad_folders.core.folder import (
    ApplicationItem,
    Folder,
    FolderReferenceItem,
    FolderValidationError,
    WebsiteItem,
    copy_item_with_new_id,
    create_folder_reference_item,
    create_website_item,
    get_nested_folder_ids,
    get_top_level_folders,
    is_valid_hex_color,
    item_from_dict,
    new_folder,
    normalize_hex_color,
)


class TestItemSerialization:
    """Test the tagged item variants and their persisted form."""

    def test_item_from_dict_dispatches_on_type(self):
        """Each type tag produces its own variant."""
        app = item_from_dict({"id": "1", "name": "Mail", "type": "application", "path": "/Applications/Mail.app"})
        site = item_from_dict({"id": "2", "name": "X", "type": "website", "url": "https://x.com", "icon": "x.png"})
        ref = item_from_dict({"id": "3", "name": "Sub", "type": "folder", "folderId": "f2", "lastUsed": 5})

        assert isinstance(app, ApplicationItem) and app.path == "/Applications/Mail.app"
        assert isinstance(site, WebsiteItem) and site.icon == "x.png"
        assert isinstance(ref, FolderReferenceItem) and ref.folder_id == "f2" and ref.last_used == 5

    def test_unknown_type_rejected(self):
        with pytest.raises(FolderValidationError):
            item_from_dict({"id": "1", "name": "?", "type": "script"})

    def test_missing_variant_field_rejected(self):
        """A website without a url is not a website."""
        with pytest.raises(FolderValidationError):
            item_from_dict({"id": "1", "name": "X", "type": "website"})

    def test_to_dict_uses_persisted_keys(self):
        ref = FolderReferenceItem("3", "Sub", "f2", last_used=7)
        assert ref.to_dict() == {"id": "3", "name": "Sub", "type": "folder", "folderId": "f2", "lastUsed": 7}
        assert "lastUsed" not in WebsiteItem("2", "X", "https://x.com").to_dict()


class TestFolder:
    """Test Folder conversion and helpers."""

    def test_round_trip_preserves_fields(self, sample_folders):
        work = sample_folders[0]
        restored = Folder.from_dict(work.to_dict())
        assert restored == work

    def test_from_dict_rejects_duplicate_item_ids(self):
        data = {"id": "f", "name": "F", "items": [
            {"id": "1", "name": "a", "type": "application", "path": "/a"},
            {"id": "1", "name": "b", "type": "application", "path": "/b"},
        ]}
        with pytest.raises(FolderValidationError, match="duplicate item id"):
            Folder.from_dict(data)

    def test_from_dict_requires_items_list(self):
        with pytest.raises(FolderValidationError):
            Folder.from_dict({"id": "f", "name": "F", "items": "nope"})

    def test_salvage_drops_bad_fields_and_items(self):
        data = {"id": "f", "name": "F", "color": 3, "items": [
            {"id": "1", "name": "a", "type": "application", "path": "/a", "lastUsed": "soon"},
            {"id": "1", "name": "b", "type": "application", "path": "/b"},
            "garbage",
        ]}
        with pytest.raises(FolderValidationError):
            Folder.from_dict(data)

        folder = Folder.from_dict(data, salvage=True)
        assert folder.color is None
        assert folder.items == [ApplicationItem("1", "a", "/a")]

    def test_salvage_still_requires_name(self):
        with pytest.raises(FolderValidationError):
            Folder.from_dict({"id": "f", "items": []}, salvage=True)

    def test_with_changes_leaves_original_untouched(self, sample_folders):
        work = sample_folders[0]
        renamed = work.with_changes(name="Office")
        assert renamed.name == "Office"
        assert work.name == "Work"
        assert renamed.items is work.items

    def test_nested_folder_ids(self, sample_folders):
        assert sample_folders[0].nested_folder_ids() == ["projects"]


class TestFolderCreation:
    """Test creation helpers."""

    def test_new_folder_generates_unique_ids(self):
        a = new_folder("A")
        b = new_folder("A")
        assert a.id != b.id

    def test_new_folder_trims_name_and_normalizes_color(self):
        folder = new_folder("  Tools  ", color="abc")
        assert folder.name == "Tools"
        assert folder.color == "#AABBCC"

    def test_new_folder_rejects_empty_name(self):
        with pytest.raises(FolderValidationError):
            new_folder("   ")

    def test_new_folder_rejects_bad_color(self):
        with pytest.raises(FolderValidationError):
            new_folder("A", color="#12")

    def test_copy_item_with_new_id_keeps_content(self):
        item = WebsiteItem("1", "X", "https://x.com", icon="x.png", last_used=4)
        copy = copy_item_with_new_id(item)
        assert copy.id != item.id
        assert (copy.name, copy.url, copy.icon, copy.last_used) == ("X", "https://x.com", "x.png", 4)

    def test_create_website_item_names_after_domain(self):
        item = create_website_item("https://www.example.com/path")
        assert item.name == "example.com"

    def test_create_folder_reference_item_uses_target_name(self, sample_folders):
        ref = create_folder_reference_item("personal", sample_folders)
        assert ref.name == "Personal"
        assert ref.folder_id == "personal"


class TestTopLevel:
    """Test nested/top-level partitioning."""

    def test_nested_and_top_level(self, sample_folders):
        assert get_nested_folder_ids(sample_folders) == {"projects"}
        assert [f.id for f in get_top_level_folders(sample_folders)] == ["work", "personal"]


class TestColors:
    """Test hex color helpers."""

    @pytest.mark.parametrize("color", ["#abc", "abc", "#A1B2C3", "a1b2c3"])
    def test_valid_colors(self, color):
        assert is_valid_hex_color(color)

    @pytest.mark.parametrize("color", ["", "#ab", "#abcd", "red", "#GGGGGG"])
    def test_invalid_colors(self, color):
        assert not is_valid_hex_color(color)

    def test_normalize(self):
        assert normalize_hex_color("#ab12ef") == "#AB12EF"
        assert normalize_hex_color("ccc") == "#CCCCCC"
