"""
Tests for manifest building and the exclusion rules.
"""

import os
import shutil
import tempfile
import unittest

from export_ops import ExclusionConfig, PathFilter


def make_tree(root, relative_paths):
    for relative in relative_paths:
        full_path = os.path.join(root, *relative.split("/"))
        os.makedirs(os.path.dirname(full_path), exist_ok=True)
        with open(full_path, "w", encoding="utf-8") as f:
            f.write(f"content of {relative}")


def rel(*parts):
    return os.path.join(*parts)


class TestPathFilterRules(unittest.TestCase):
    """should_include behaviour for single paths."""

    def setUp(self):
        self.root = tempfile.mkdtemp()
        self.path_filter = PathFilter()
        self.config = ExclusionConfig(
            excluded_folders={"Build", ".git"}, excluded_extensions={".zip", ".sln"}
        )

    def tearDown(self):
        shutil.rmtree(self.root, ignore_errors=True)

    def _include(self, *parts):
        return self.path_filter.should_include(
            os.path.join(self.root, *parts), self.root, self.config
        )

    def test_excluded_folder_is_rejected(self):
        self.assertFalse(self._include("Build", "game.exe"))
        self.assertFalse(self._include("Build", "Data", "level0"))
        self.assertFalse(self._include(".git", "HEAD"))

    def test_similar_prefix_folders_are_kept(self):
        """Excluding Build must not exclude Builds or BuildTools."""
        self.assertTrue(self._include("Builds", "game.exe"))
        self.assertTrue(self._include("BuildTools", "tool.py"))

    def test_folder_names_are_case_sensitive(self):
        self.assertTrue(self._include("build", "game.exe"))

    def test_only_root_level_folders_are_excluded(self):
        self.assertTrue(self._include("Assets", "Build", "notes.txt"))

    def test_top_level_extension_excluded(self):
        self.assertFalse(self._include("game.zip"))
        self.assertFalse(self._include("Game.sln"))

    def test_nested_extension_kept(self):
        self.assertTrue(self._include("Assets", "bundle.zip"))

    def test_file_named_like_excluded_folder_is_kept(self):
        self.assertTrue(self._include("Build"))

    def test_extensions_are_normalized(self):
        config = ExclusionConfig(excluded_extensions={"sln", " .csproj "})
        self.assertEqual(config.excluded_extensions, frozenset({".sln", ".csproj"}))


class TestManifestBuilding(unittest.TestCase):
    """build_manifest over real directory trees."""

    def setUp(self):
        self.root = tempfile.mkdtemp()
        self.path_filter = PathFilter()

    def tearDown(self):
        shutil.rmtree(self.root, ignore_errors=True)

    def test_default_scenario(self):
        make_tree(
            self.root,
            [
                "Assets/a.txt",
                "Library/x.bin",
                "Library/LastSceneManagerSetup.txt",
                ".git/HEAD",
                "game.zip",
            ],
        )
        config = ExclusionConfig(
            excluded_folders={".git", "Library", "Logs", "Temp"},
            excluded_extensions={".zip"},
        )

        manifest = self.path_filter.build_manifest(self.root, config)

        self.assertEqual(
            manifest.relative_paths(),
            [rel("Assets", "a.txt"), rel("Library", "LastSceneManagerSetup.txt")],
        )

    def test_build_excluded_but_buildtools_present(self):
        make_tree(self.root, ["Build/out.exe", "BuildTools/make.py", "Builds/old.exe"])
        config = ExclusionConfig(excluded_folders={"Build"})

        relative = self.path_filter.build_manifest(self.root, config).relative_paths()

        self.assertNotIn(rel("Build", "out.exe"), relative)
        self.assertIn(rel("BuildTools", "make.py"), relative)
        self.assertIn(rel("Builds", "old.exe"), relative)

    def test_carve_outs_not_duplicated(self):
        make_tree(
            self.root,
            ["Library/LastSceneManagerSetup.txt", "Library/EditorUserBuildSettings.asset"],
        )
        config = ExclusionConfig()

        manifest = self.path_filter.build_manifest(self.root, config)

        self.assertEqual(len(manifest), 2)
        self.assertEqual(len(set(manifest)), 2)

    def test_carve_outs_only_when_present(self):
        make_tree(self.root, ["Library/EditorUserBuildSettings.asset", "Library/cache.db"])
        config = ExclusionConfig(excluded_folders={"Library"})

        relative = self.path_filter.build_manifest(self.root, config).relative_paths()

        self.assertEqual(relative, [rel("Library", "EditorUserBuildSettings.asset")])

    def test_empty_root_gives_empty_manifest(self):
        manifest = self.path_filter.build_manifest(self.root, ExclusionConfig())
        self.assertEqual(len(manifest), 0)

    def test_walk_is_deterministic(self):
        make_tree(
            self.root,
            ["b/2.txt", "a/1.txt", "a/z/3.txt", "c.txt", "d/0.txt"],
        )
        config = ExclusionConfig()

        first = list(self.path_filter.build_manifest(self.root, config))
        second = list(self.path_filter.build_manifest(self.root, config))

        self.assertEqual(first, second)
        self.assertEqual(len(first), 5)

    def test_stats_report_pruned_folders(self):
        make_tree(self.root, ["Temp/a", "Logs/b", "Assets/c"])
        config = ExclusionConfig(excluded_folders={"Temp", "Logs"})

        manifest, stats = self.path_filter.build_manifest_with_stats(self.root, config)

        self.assertEqual(len(manifest), 1)
        self.assertEqual(stats.pruned_folders, 2)
        self.assertEqual(stats.to_dict()["included_files"], 1)

    def test_missing_root_raises(self):
        missing = os.path.join(self.root, "nope")
        with self.assertRaises(FileNotFoundError):
            self.path_filter.build_manifest(missing, ExclusionConfig())

    def test_file_root_raises(self):
        make_tree(self.root, ["file.txt"])
        with self.assertRaises(NotADirectoryError):
            self.path_filter.build_manifest(
                os.path.join(self.root, "file.txt"), ExclusionConfig()
            )


if __name__ == "__main__":
    unittest.main()
