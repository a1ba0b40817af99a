import dataclasses
import tempfile
from os import path
from pathlib import Path

import pytest

import mep.tests.utils as testutils
from mep.classes.catalog import find_path, is_script, list_scripts


@dataclasses.dataclass
class TestCase:
    name: str
    extension: str
    sort_by: str
    expected_names: list[str]


def test_list_scripts():
    with tempfile.TemporaryDirectory() as temp_dir:
        temp_dir = Path(path.realpath(temp_dir))
        testutils.setup_test_dir(temp_dir / "nested.py")
        testutils.setup_scripts(
            temp_dir,
            {
                "b.py": testutils.PASSTHROUGH,
                "A.py": testutils.PASSTHROUGH,
                "notes.txt": "not a script",
                "c.PY": testutils.PASSTHROUGH,
                "d.lua": "",
            },
        )

        test_cases: list[TestCase] = [
            TestCase(
                name="Sorted by name, case insensitive",
                extension="py",
                sort_by="name",
                expected_names=["A.py", "b.py", "c.PY"],
            ),
            TestCase(
                name="Other extension",
                extension="lua",
                sort_by="name",
                expected_names=["d.lua"],
            ),
            TestCase(
                name="Extension given with a dot",
                extension=".txt",
                sort_by="name",
                expected_names=["notes.txt"],
            ),
        ]
        for t in test_cases:
            catalog = list_scripts(str(temp_dir), t.extension, t.sort_by)
            assert [s.display_name for s in catalog] == t.expected_names, t.name
            assert [s.index for s in catalog] == list(range(len(t.expected_names)))
            for script in catalog:
                assert script.path == str(temp_dir / script.display_name), t.name
            print("Passed ", t.name)


def test_list_scripts_directory_order_keeps_every_script():
    with tempfile.TemporaryDirectory() as temp_dir:
        testutils.setup_scripts(
            Path(temp_dir), {"x.py": "", "y.py": "", "z.py": ""}
        )
        catalog = list_scripts(temp_dir)
        assert sorted(s.display_name for s in catalog) == ["x.py", "y.py", "z.py"]
        assert [s.index for s in catalog] == [0, 1, 2]


def test_list_scripts_empty_and_missing_folder():
    with tempfile.TemporaryDirectory() as temp_dir:
        assert list_scripts(temp_dir) == []
        with pytest.raises(OSError):
            list_scripts(path.join(temp_dir, "missing"))


def test_find_path():
    with tempfile.TemporaryDirectory() as temp_dir:
        temp_dir = Path(path.realpath(temp_dir))
        paths = testutils.setup_scripts(temp_dir, {"a.py": "", "b.py": ""})
        catalog = list_scripts(str(temp_dir), sort_by="name")
        assert find_path(catalog, paths["b.py"]) == 1
        # relative spellings resolve to the same file
        assert find_path(catalog, str(temp_dir / "." / "a.py")) == 0
        assert find_path(catalog, str(temp_dir / "c.py")) is None


def test_is_script():
    assert is_script("/tmp/a.py", "py")
    assert is_script("/tmp/a.Py", "py")
    assert not is_script("/tmp/a.pyc", "py")
    assert not is_script("/tmp/py", "py")
