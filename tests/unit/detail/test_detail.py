"""Tests for detail column accessors over real and fake entries."""

from __future__ import annotations

import os
import stat
import tempfile
import unittest
from dataclasses import dataclass, replace
from datetime import timedelta, timezone
from pathlib import Path
from types import SimpleNamespace
from unittest import mock

from lazyls import detail
from lazyls.config import DetailConfig, SizeUnit, TimeField
from lazyls.git_status import DIRECTORY_MODIFIED
from lazyls.identity import IdentityCache
from lazyls.markup import strip_markup
from lazyls.node import EntryType, Node


@dataclass
class _FakeNode:
    path: Path
    typ: EntryType
    meta: object | None

    def stat(self):
        return self.meta


def _meta(**overrides) -> SimpleNamespace:
    values = {
        "st_mode": stat.S_IFREG | 0o644,
        "st_ino": 1234,
        "st_dev": 56,
        "st_nlink": 1,
        "st_uid": 1000,
        "st_gid": 1000,
        "st_size": 1536,
        "st_blocks": 8,
        "st_atime": 0.0,
        "st_mtime": 0.0,
        "st_ctime": 0.0,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def _file(**overrides) -> _FakeNode:
    return _FakeNode(Path("f"), EntryType.FILE, _meta(**overrides))


def _dir(**overrides) -> _FakeNode:
    return _FakeNode(Path("d"), EntryType.DIR, _meta(st_mode=stat.S_IFDIR | 0o755, **overrides))


class SizeAndBlocksTests(unittest.TestCase):
    def test_directory_has_no_size_or_blocks(self) -> None:
        config = DetailConfig()
        node = _dir()
        self.assertIsNone(detail.size_value(node))
        self.assertIsNone(detail.blocks_value(node))
        self.assertIsNone(detail.size(node, config))
        self.assertIsNone(detail.blocks(node, config))

    def test_real_directory_has_no_size_or_blocks(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            node = Node(Path(tmp))
            self.assertIsNone(detail.size_value(node))
            self.assertIsNone(detail.blocks_value(node))

    def test_real_file_size_matches_content_length(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "five.txt"
            path.write_bytes(b"12345")
            self.assertEqual(detail.size_value(Node(path)), 5)

    def test_binary_units(self) -> None:
        config = DetailConfig()
        self.assertEqual(strip_markup(detail.size(_file(st_size=512), config)), "512 B")
        self.assertEqual(strip_markup(detail.size(_file(st_size=1536), config)), "1.5 KiB")
        self.assertEqual(strip_markup(detail.size(_file(st_size=3 * 1024 ** 3), config)), "3.0 GiB")

    def test_decimal_and_plain_units(self) -> None:
        decimal = replace(DetailConfig(), unit=SizeUnit.DECIMAL)
        plain = replace(DetailConfig(), unit=SizeUnit.NONE)
        self.assertEqual(strip_markup(detail.size(_file(st_size=1500), decimal)), "1.5 kB")
        self.assertEqual(strip_markup(detail.size(_file(st_size=1536), plain)), "1536")

    def test_blocks_missing_on_platform_is_none(self) -> None:
        node = _FakeNode(Path("f"), EntryType.FILE, SimpleNamespace(st_size=1))
        self.assertIsNone(detail.blocks(node, DetailConfig()))

    def test_blocks_render(self) -> None:
        self.assertEqual(detail.blocks(_file(st_blocks=8), DetailConfig()), "<dimmed>8</dimmed>")


class UnavailableMetadataTests(unittest.TestCase):
    def test_every_accessor_returns_none_without_metadata(self) -> None:
        config = DetailConfig()
        identities = IdentityCache()
        node = _FakeNode(Path("gone"), EntryType.FILE, None)

        for accessor in (detail.dev, detail.ino, detail.nlink, detail.perm, detail.octal, detail.size, detail.blocks):
            self.assertIsNone(accessor(node, config), accessor.__name__)
        for accessor in (detail.user, detail.uid, detail.group, detail.gid):
            self.assertIsNone(accessor(node, identities, config), accessor.__name__)
        for field in TimeField:
            self.assertIsNone(detail.time(node, field, config))
        self.assertIsNone(detail.user_value(node, identities))
        self.assertIsNone(detail.group_value(node, identities))


class TimestampTests(unittest.TestCase):
    def setUp(self) -> None:
        formats = {field: "%Y-%m-%d %H:%M" for field in TimeField}
        self.config = replace(DetailConfig(), timestamp_formats=formats)

    def test_timestamp_uses_current_utc_offset(self) -> None:
        node = _file(st_mtime=0.0)
        with mock.patch("lazyls.detail.current_utc_offset", return_value=timedelta(hours=2)):
            self.assertEqual(detail.time(node, TimeField.MTIME, self.config), "1970-01-01 02:00")

    def test_each_field_reads_its_own_timestamp(self) -> None:
        node = _file(st_atime=60.0, st_ctime=120.0, st_mtime=180.0, st_birthtime=240.0)
        with mock.patch("lazyls.detail.current_utc_offset", return_value=timedelta(0)):
            self.assertEqual(detail.time(node, TimeField.ATIME, self.config), "1970-01-01 00:01")
            self.assertEqual(detail.time(node, TimeField.CTIME, self.config), "1970-01-01 00:02")
            self.assertEqual(detail.time(node, TimeField.MTIME, self.config), "1970-01-01 00:03")
            self.assertEqual(detail.time(node, TimeField.BTIME, self.config), "1970-01-01 00:04")

    def test_birth_time_missing_on_platform_is_none(self) -> None:
        self.assertIsNone(detail.time(_file(), TimeField.BTIME, self.config))

    def test_offset_failure_falls_back_to_utc_with_warning(self) -> None:
        node = _file(st_mtime=3600.0)
        with mock.patch("lazyls.detail.current_utc_offset", side_effect=OverflowError("no tz")):
            with self.assertLogs("lazyls.detail", level="WARNING") as logs:
                rendered = detail.time(node, TimeField.MTIME, self.config)

        self.assertEqual(rendered, "1970-01-01 01:00")
        self.assertIn("UTC offset", logs.output[0])

    def test_explicit_zone_skips_offset_lookup(self) -> None:
        node = _file(st_mtime=0.0)
        with mock.patch("lazyls.detail.current_utc_offset") as offset:
            rendered = detail.time(node, TimeField.MTIME, self.config, timezone(timedelta(hours=-1)))

        self.assertEqual(rendered, "1969-12-31 23:00")
        offset.assert_not_called()

    def test_timestamp_style_wraps_value(self) -> None:
        config = replace(self.config, styles={**self.config.styles, "timestamp": "blue"})
        with mock.patch("lazyls.detail.current_utc_offset", return_value=timedelta(0)):
            self.assertEqual(detail.time(_file(), TimeField.MTIME, config), "<blue>1970-01-01 00:00</blue>")


class LinkCountTests(unittest.TestCase):
    def test_file_with_several_links_is_notable(self) -> None:
        config = DetailConfig()
        self.assertEqual(detail.nlink(_file(st_nlink=1), config), "1")
        self.assertEqual(detail.nlink(_file(st_nlink=3), config), "<bold red>3</bold red>")

    def test_directory_with_single_link_is_notable(self) -> None:
        config = DetailConfig()
        self.assertEqual(detail.nlink(_dir(st_nlink=1), config), "<bold red>1</bold red>")
        self.assertEqual(detail.nlink(_dir(st_nlink=4), config), "4")


class RawNumberTests(unittest.TestCase):
    def test_dev_and_ino(self) -> None:
        config = DetailConfig()
        self.assertEqual(detail.dev(_file(st_dev=56), config), "<dimmed>56</dimmed>")
        self.assertEqual(detail.ino(_file(st_ino=1234), config), "<dimmed>1234</dimmed>")


class OwnershipTests(unittest.TestCase):
    def test_owner_of_own_file_is_highlighted(self) -> None:
        config = DetailConfig()
        identities = IdentityCache()
        node = _file(st_uid=os.geteuid(), st_gid=os.getegid())
        with mock.patch("lazyls.identity._lookup_user_name", return_value="me"), mock.patch(
            "lazyls.identity._lookup_group_name", return_value="us"
        ):
            self.assertEqual(detail.user(node, identities, config), "<bold blue>me</bold blue>")
            self.assertEqual(detail.group(node, identities, config), "<bold blue>us</bold blue>")
            self.assertEqual(detail.user_value(node, identities), "me")
            self.assertEqual(detail.group_value(node, identities), "us")

    def test_foreign_owner_uses_other_style(self) -> None:
        config = DetailConfig()
        identities = IdentityCache()
        foreign_uid = os.geteuid() + 1
        node = _file(st_uid=foreign_uid)
        with mock.patch("lazyls.identity._lookup_user_name", return_value="them"):
            self.assertEqual(detail.user(node, identities, config), "<dimmed>them</dimmed>")
            self.assertEqual(detail.uid(node, identities, config), f"<dimmed>{foreign_uid}</dimmed>")

    def test_lookups_are_shared_across_nodes(self) -> None:
        identities = IdentityCache()
        config = DetailConfig()
        with mock.patch("lazyls.identity._lookup_user_name", return_value="me") as lookup:
            for _ in range(3):
                detail.user(_file(st_uid=4242), identities, config)
        self.assertEqual(lookup.call_count, 1)


class PermissionAccessorTests(unittest.TestCase):
    def test_symbolic_and_octal_from_same_mode(self) -> None:
        config = DetailConfig()
        node = _file(st_mode=stat.S_IFREG | 0o4755)
        self.assertEqual(strip_markup(detail.perm(node, config)), "rwsr-xr-x")
        self.assertEqual(strip_markup(detail.octal(node, config)), "4755")


class GitColumnTests(unittest.TestCase):
    def test_git_column_renders_resolver_code(self) -> None:
        resolver = mock.Mock()
        resolver.status.return_value = DIRECTORY_MODIFIED
        node = _dir()
        self.assertEqual(detail.git(node, resolver, DetailConfig()), "<red> *</red>")
        resolver.status.assert_called_once_with(node)
