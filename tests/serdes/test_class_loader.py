import io
import sys
import textwrap
import types
import zipfile

import pytest

from yasr.exceptions import SerDesInstantiationError
from yasr.serdes import ModuleClassLoader, Serializer

SOURCE = textwrap.dedent(
    """
    import json

    from yasr.serdes import Serializer


    class JsonSerializer(Serializer):
        def serialize(self, payload, schema_metadata):
            return json.dumps(payload, sort_keys=True).encode("utf-8")


    NOT_A_CLASS = 1
    """
)


def archive(files: dict[str, str]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return buffer.getvalue()


@pytest.fixture
def loader():
    return ModuleClassLoader()


# %% Single source files
class TestSourceFile:
    def test_loads_class(self, loader):
        cls = loader.load(SOURCE.encode(), "JsonSerializer")
        assert issubclass(cls, Serializer)
        assert cls().serialize({"b": 1, "a": 2}, None) == b'{"a": 2, "b": 1}'

    def test_module_path_is_ignored(self, loader):
        cls = loader.load(SOURCE.encode(), "acme.serdes.JsonSerializer")
        assert cls.__name__ == "JsonSerializer"

    def test_module_is_not_registered(self, loader):
        cls = loader.load(SOURCE.encode(), "acme.serdes.JsonSerializer")
        assert cls.__module__ not in sys.modules

    def test_missing_class(self, loader):
        with pytest.raises(SerDesInstantiationError, match="'Missing' not found"):
            loader.load(SOURCE.encode(), "Missing")

    def test_attribute_that_is_not_a_class(self, loader):
        with pytest.raises(SerDesInstantiationError, match="not found"):
            loader.load(SOURCE.encode(), "NOT_A_CLASS")

    def test_syntax_error(self, loader):
        with pytest.raises(SerDesInstantiationError, match="Failed to load module"):
            loader.load(b"class Broken(:\n", "Broken")

    def test_import_error(self, loader):
        source = b"import yasr_module_that_does_not_exist\n"
        with pytest.raises(SerDesInstantiationError, match="Failed to load module"):
            loader.load(source, "Anything")

    def test_binary_garbage(self, loader):
        with pytest.raises(SerDesInstantiationError, match="neither a zip archive"):
            loader.load(b"\xff\xfe\x00\x81", "Anything")

    def test_invalid_class_name(self, loader):
        with pytest.raises(SerDesInstantiationError, match="Invalid class name"):
            loader.load(SOURCE.encode(), "acme.")

    def test_loads_are_isolated(self, loader):
        first = loader.load(SOURCE.encode(), "JsonSerializer")
        second = loader.load(SOURCE.encode(), "JsonSerializer")
        assert first is not second


# %% Zip archives
class TestArchive:
    def test_module_file(self, loader):
        binary = archive({"acme/__init__.py": "", "acme/serdes.py": SOURCE})
        cls = loader.load(binary, "acme.serdes.JsonSerializer")
        assert cls.__module__ == "acme.serdes"

    def test_package_init(self, loader):
        binary = archive({"acme/__init__.py": "", "acme/serdes/__init__.py": SOURCE})
        cls = loader.load(binary, "acme.serdes.JsonSerializer")
        assert issubclass(cls, Serializer)

    def test_missing_module(self, loader):
        binary = archive({"acme/other.py": SOURCE})
        with pytest.raises(SerDesInstantiationError, match="'acme.serdes' not found"):
            loader.load(binary, "acme.serdes.JsonSerializer")

    def test_requires_module_path(self, loader):
        binary = archive({"serdes.py": SOURCE})
        with pytest.raises(SerDesInstantiationError, match="must include its module path"):
            loader.load(binary, "JsonSerializer")

    def test_missing_class(self, loader):
        binary = archive({"acme/__init__.py": "", "acme/serdes.py": SOURCE})
        with pytest.raises(SerDesInstantiationError, match="not found in uploaded file"):
            loader.load(binary, "acme.serdes.Missing")

    def test_modules_import_each_other(self, loader):
        binary = archive(
            {
                "acme/__init__.py": "",
                "acme/helpers.py": "PREFIX = b'>'\n",
                "acme/ser.py": (
                    "from acme.helpers import PREFIX\n"
                    "from yasr.serdes import Serializer\n\n\n"
                    "class PrefixSerializer(Serializer):\n"
                    "    def serialize(self, payload, schema_metadata):\n"
                    "        return PREFIX + payload\n"
                ),
            }
        )
        cls = loader.load(binary, "acme.ser.PrefixSerializer")
        assert cls().serialize(b"data", None) == b">data"

    def test_archive_modules_are_unregistered_after_load(self, loader):
        binary = archive({"acme/__init__.py": "", "acme/serdes.py": SOURCE})
        loader.load(binary, "acme.serdes.JsonSerializer")
        assert "acme" not in sys.modules
        assert "acme.serdes" not in sys.modules

    def test_archives_do_not_share_modules(self, loader):
        first = archive({"acme/__init__.py": "VALUE = 1\n", "acme/serdes.py": SOURCE})
        second = archive({"acme/__init__.py": "VALUE = 2\n", "acme/serdes.py": SOURCE})
        cls_one = loader.load(first, "acme.serdes.JsonSerializer")
        cls_two = loader.load(second, "acme.serdes.JsonSerializer")
        assert cls_one is not cls_two

    def test_shadowed_module_is_restored(self, loader, monkeypatch):
        installed = types.ModuleType("acme")
        monkeypatch.setitem(sys.modules, "acme", installed)
        binary = archive({"acme/__init__.py": "", "acme/serdes.py": SOURCE})
        cls = loader.load(binary, "acme.serdes.JsonSerializer")
        assert issubclass(cls, Serializer)
        assert sys.modules["acme"] is installed

    def test_missing_top_level_package(self, loader):
        binary = archive({"other/__init__.py": "", "other/serdes.py": SOURCE})
        with pytest.raises(SerDesInstantiationError, match="'acme.serdes' not found"):
            loader.load(binary, "acme.serdes.JsonSerializer")

    def test_import_error_inside_archive(self, loader):
        binary = archive(
            {
                "acme/__init__.py": "",
                "acme/serdes.py": "import yasr_module_that_does_not_exist\n",
            }
        )
        with pytest.raises(SerDesInstantiationError, match="Failed to load module"):
            loader.load(binary, "acme.serdes.Anything")
