"""Tests for backup artifact classification and discovery."""

import logging
import os
from datetime import datetime, timezone

import pytest

from wpstack.backup.artifacts import (
    ArchiveLocator,
    ArtifactKind,
    Compression,
    SnapshotSet,
    classify_artifact,
    make_stamp,
    parse_stamp,
)
from wpstack.utils.errors import NotFoundError, SnapshotMismatchError, UsageError

STAMP = "20250102T030405Z"
OTHER_STAMP = "20250203T040506Z"


def touch(directory, name):
    path = os.path.join(directory, name)
    with open(path, "wb") as f:
        f.write(b"x")
    return path


class TestStamps:
    """Test timestamp formatting and parsing."""

    def test_make_stamp_uses_utc(self):
        moment = datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        assert make_stamp(moment) == STAMP

    def test_parse_stamp_from_name(self):
        parsed = parse_stamp(f"/backups/db-{STAMP}.sql.gz")
        assert parsed == datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    def test_parse_stamp_without_stamp(self):
        assert parse_stamp("db.sql.gz") is None


class TestClassifyArtifact:
    """Test suffix-based classification."""

    def test_sql_dump(self):
        artifact = classify_artifact(f"db-{STAMP}.sql.gz", ArtifactKind.DATABASE_DUMP)

        assert artifact.kind is ArtifactKind.DATABASE_DUMP
        assert artifact.compression is Compression.GZIP
        assert artifact.timestamp == parse_stamp(STAMP)

    def test_plain_sql_dump(self):
        artifact = classify_artifact("db.sql", ArtifactKind.DATABASE_DUMP)

        assert artifact.kind is ArtifactKind.DATABASE_DUMP
        assert artifact.compression is Compression.NONE
        assert artifact.timestamp is None

    def test_tar_designated_as_database_is_raw_volume(self):
        artifact = classify_artifact("db_data.tar", ArtifactKind.DATABASE_DUMP)

        assert artifact.kind is ArtifactKind.DATABASE_VOLUME
        assert artifact.compression is Compression.NONE

    def test_tgz_designated_as_files(self):
        artifact = classify_artifact("wpfiles.tgz", ArtifactKind.FILE_VOLUME)

        assert artifact.kind is ArtifactKind.FILE_VOLUME
        assert artifact.is_gzip

    def test_unknown_database_suffix(self):
        with pytest.raises(UsageError) as exc_info:
            classify_artifact("db.zip", ArtifactKind.DATABASE_DUMP)

        assert "Cannot infer DB file type" in exc_info.value.message

    def test_sql_designated_as_files(self):
        with pytest.raises(UsageError):
            classify_artifact("wpfiles.sql", ArtifactKind.FILE_VOLUME)


class TestSnapshotSet:
    """Test the point-in-time consistency rules of a snapshot."""

    def test_matching_stamps(self):
        snapshot = SnapshotSet(
            database=classify_artifact(f"db-{STAMP}.sql.gz", ArtifactKind.DATABASE_DUMP),
            files=classify_artifact(f"wpfiles-{STAMP}.tar.gz", ArtifactKind.FILE_VOLUME),
        )

        assert snapshot.is_consistent
        assert snapshot.database_mode == "sql"

    def test_mismatched_stamps_rejected(self):
        with pytest.raises(SnapshotMismatchError):
            SnapshotSet(
                database=classify_artifact(f"db-{STAMP}.sql.gz", ArtifactKind.DATABASE_DUMP),
                files=classify_artifact(f"wpfiles-{OTHER_STAMP}.tar.gz", ArtifactKind.FILE_VOLUME),
            )

    def test_mismatched_stamps_allowed_with_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="wpstack.backup.artifacts"):
            snapshot = SnapshotSet(
                database=classify_artifact(f"db-{STAMP}.sql.gz", ArtifactKind.DATABASE_DUMP),
                files=classify_artifact(f"wpfiles-{OTHER_STAMP}.tar.gz", ArtifactKind.FILE_VOLUME),
                allow_mismatch=True,
            )

        assert not snapshot.is_consistent
        assert "different timestamps" in caplog.text

    def test_missing_stamp_warns(self, caplog):
        with caplog.at_level(logging.WARNING, logger="wpstack.backup.artifacts"):
            snapshot = SnapshotSet(
                database=classify_artifact("db.sql.gz", ArtifactKind.DATABASE_DUMP),
                files=classify_artifact(f"wpfiles-{STAMP}.tar.gz", ArtifactKind.FILE_VOLUME),
            )

        assert not snapshot.is_consistent
        assert "Cannot verify" in caplog.text

    def test_halves_must_have_right_kind(self):
        files = classify_artifact("wpfiles.tar.gz", ArtifactKind.FILE_VOLUME)

        with pytest.raises(UsageError):
            SnapshotSet(database=files, files=files)

    def test_raw_volume_mode(self):
        snapshot = SnapshotSet(
            database=classify_artifact(f"db_data-{STAMP}.tar.gz", ArtifactKind.DATABASE_DUMP),
            files=classify_artifact(f"wpfiles-{STAMP}.tar.gz", ArtifactKind.FILE_VOLUME),
        )

        assert snapshot.database_mode == "volume"


class TestArchiveLocator:
    """Test artifact discovery inside backup directories."""

    def setup_method(self):
        """Setup test environment."""
        self.locator = ArchiveLocator()

    def test_locate_prefers_sql_over_volume(self, temp_directory):
        touch(temp_directory, f"db_data-{STAMP}.tar.gz")
        sql = touch(temp_directory, f"db-{STAMP}.sql.gz")
        files = touch(temp_directory, f"wpfiles-{STAMP}.tar.gz")

        snapshot = self.locator.locate(temp_directory)

        assert snapshot.database.path == sql
        assert snapshot.database.kind is ArtifactKind.DATABASE_DUMP
        assert snapshot.files.path == files

    def test_locate_falls_back_to_raw_volume(self, temp_directory):
        volume = touch(temp_directory, "db_data.tar.gz")
        touch(temp_directory, "wpfiles.tar.gz")

        snapshot = self.locator.locate(temp_directory)

        assert snapshot.database.path == volume
        assert snapshot.database.kind is ArtifactKind.DATABASE_VOLUME

    def test_pattern_order_decides_before_name_order(self, temp_directory):
        preferred = touch(temp_directory, "db.sql.gz")
        touch(temp_directory, f"db-{STAMP}.sql.gz")

        assert self.locator.find_database_artifact(temp_directory).path == preferred

    def test_sorted_first_match_within_pattern(self, temp_directory):
        first = touch(temp_directory, f"wpfiles-{STAMP}.tar.gz")
        touch(temp_directory, f"wpfiles-{OTHER_STAMP}.tar.gz")

        assert self.locator.find_files_artifact(temp_directory).path == first

    def test_compressed_files_archive_preferred(self, temp_directory):
        touch(temp_directory, "wpfiles.tar")
        compressed = touch(temp_directory, "wpfiles.tar.gz")

        assert self.locator.find_files_artifact(temp_directory).path == compressed

    def test_missing_directory(self, temp_directory):
        missing = os.path.join(temp_directory, "nope")

        with pytest.raises(NotFoundError) as exc_info:
            self.locator.locate(missing)

        assert "Backup dir not found" in exc_info.value.message

    def test_missing_files_archive(self, temp_directory):
        touch(temp_directory, "db.sql.gz")

        with pytest.raises(NotFoundError) as exc_info:
            self.locator.locate(temp_directory)

        assert "WordPress files archive" in exc_info.value.message

    def test_missing_database_artifact(self, temp_directory):
        touch(temp_directory, "wpfiles.tar.gz")

        with pytest.raises(NotFoundError) as exc_info:
            self.locator.find_database_artifact(temp_directory)

        assert "database artifact" in exc_info.value.message

    def test_resolve_explicit_paths_win(self, temp_directory):
        touch(temp_directory, f"db-{STAMP}.sql.gz")
        touch(temp_directory, f"wpfiles-{STAMP}.tar.gz")
        other_dir = os.path.join(temp_directory, "other")
        os.makedirs(other_dir)
        explicit_db = touch(other_dir, f"db_data-{STAMP}.tar")

        snapshot = self.locator.resolve(temp_directory, db_path=explicit_db)

        assert snapshot.database.path == explicit_db
        assert snapshot.database.kind is ArtifactKind.DATABASE_VOLUME
        assert snapshot.files.name == f"wpfiles-{STAMP}.tar.gz"

    def test_resolve_without_directory_needs_both(self, temp_directory):
        db = touch(temp_directory, "db.sql")

        with pytest.raises(UsageError) as exc_info:
            self.locator.resolve(db_path=db)

        assert "--wpfiles" in exc_info.value.message

    def test_resolve_nothing_given(self):
        with pytest.raises(UsageError) as exc_info:
            self.locator.resolve()

        assert exc_info.value.message == "Missing --db and --wpfiles"

    def test_resolve_missing_explicit_file(self, temp_directory):
        files = touch(temp_directory, "wpfiles.tar.gz")

        with pytest.raises(NotFoundError) as exc_info:
            self.locator.resolve(db_path=os.path.join(temp_directory, "gone.sql"), files_path=files)

        assert "DB file not found" in exc_info.value.message
