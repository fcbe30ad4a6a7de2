import hashlib
import io
import json
import textwrap
import zipfile

import pytest

from yasr import (
    Compatibility,
    RegistryConfig,
    SchemaKey,
    SchemaMetadata,
    SchemaMetadataKey,
    SchemaRegistryClient,
    SerDesInfo,
    VersionedSchema,
)
from yasr.exceptions import (
    IncompatibleSchemaError,
    NotFoundError,
    RegistryConfigError,
    RegistryError,
    SchemaNotFoundError,
    SerDesFileNotFoundError,
    SerDesInstantiationError,
)
from yasr.serdes import Deserializer, Serializer
from yasr.storage import FileSystemSchemaStore

DEVICE_V1 = json.dumps(
    {
        "type": "record",
        "name": "Device",
        "namespace": "com.example.iot",
        "fields": [{"name": "id", "type": "long"}],
    }
)
DEVICE_V2 = json.dumps(
    {
        "type": "record",
        "name": "Device",
        "namespace": "com.example.iot",
        "fields": [
            {"name": "id", "type": "long"},
            {"name": "firmware", "type": "string", "default": "unknown"},
        ],
    }
)
DEVICE = SchemaMetadata(
    name="com.example.iot.device", type="avro", compatibility=Compatibility.BOTH
)

SERDES_SOURCE = textwrap.dedent(
    """
    import json

    from yasr.serdes import Deserializer, Serializer


    class JsonSerializer(Serializer):
        def serialize(self, payload, schema_metadata):
            prefix = self.config.get("prefix", "")
            return (prefix + json.dumps(payload, sort_keys=True)).encode("utf-8")


    class JsonDeserializer(Deserializer):
        def deserialize(self, data, schema_metadata, reader_version=None):
            return json.loads(data.decode("utf-8"))


    class NeedsArguments(Serializer):
        def __init__(self, required):
            super().__init__()

        def serialize(self, payload, schema_metadata):
            return b""
    """
).encode("utf-8")


@pytest.fixture
def client(tmp_path):
    config = RegistryConfig(file_storage_path=str(tmp_path / "files"))
    with SchemaRegistryClient.from_config(config) as client:
        yield client


@pytest.fixture
def key(client) -> SchemaKey:
    return client.register_schema(DEVICE, VersionedSchema(DEVICE_V1))


@pytest.fixture
def file_id(client) -> str:
    return client.upload_file(SERDES_SOURCE)


# %% Schemas
class TestSchemas:
    def test_register_and_evolve_by_name(self, client, key):
        key2 = client.add_versioned_schema(DEVICE.key, VersionedSchema(DEVICE_V2))
        assert key2 == SchemaKey(key.schema_metadata_id, 2)
        assert client.get_latest_schema(DEVICE.key).schema_text == DEVICE_V2

    def test_id_and_name_keys_are_equivalent(self, client, key):
        client.add_versioned_schema(key.schema_metadata_id, VersionedSchema(DEVICE_V2))
        by_id = client.get_all_versions(key.schema_metadata_id)
        by_name = client.get_all_versions(SchemaMetadataKey(DEVICE.name))
        assert by_id == by_name
        assert client.get_schema_metadata(key.schema_metadata_id) == (
            client.get_schema_metadata(DEVICE.key)
        )

    def test_register_schema_metadata(self, client):
        assert client.register_schema_metadata(DEVICE)
        assert not client.register_schema_metadata(DEVICE)
        assert client.get_all_versions(DEVICE.key) == []

    def test_list_all_schemas(self, client, key):
        client.register_schema_metadata(SchemaMetadata(name="other", type="avro"))
        assert [m.name for m in client.list_all_schemas()] == [DEVICE.name, "other"]

    def test_get_schema(self, client, key):
        info = client.get_schema(key)
        assert info.schema_text == DEVICE_V1
        assert info.fingerprint

    def test_unknown_name(self, client):
        with pytest.raises(SchemaNotFoundError):
            client.get_latest_schema(SchemaMetadataKey("missing"))

    def test_incompatible_version(self, client, key):
        with pytest.raises(IncompatibleSchemaError):
            client.add_versioned_schema(DEVICE.key, VersionedSchema('"string"'))

    def test_compatibility_checks(self, client, key):
        assert client.is_compatible_with_all_versions(DEVICE.key, DEVICE_V2)
        assert not client.is_compatible_with_all_versions(DEVICE.key, '"string"')
        result = client.check_compatibility(DEVICE.key, '"string"')
        assert not result.compatible
        assert result.schema_key == key

    @pytest.mark.parametrize("bad_key", ["com.example.iot.device", 1.0, True, None])
    def test_rejects_other_key_types(self, client, bad_key):
        with pytest.raises(TypeError, match="SchemaMetadataKey"):
            client.get_all_versions(bad_key)


# %% Caching
class TestCaching:
    def test_version_lookups_are_cached(self, tmp_path, monkeypatch):
        config = RegistryConfig(file_storage_path=str(tmp_path))
        client = SchemaRegistryClient.from_config(config)
        key = client.register_schema(DEVICE, VersionedSchema(DEVICE_V1))

        calls = []
        lookup = client.registry.get_schema_version

        def counting(schema_key):
            calls.append(schema_key)
            return lookup(schema_key)

        monkeypatch.setattr(client.registry, "get_schema_version", counting)
        cached = SchemaRegistryClient(client.registry)
        assert cached.get_schema(key) is cached.get_schema(key)
        assert calls == [key]

    def test_name_resolution_is_cached(self, client, key, monkeypatch):
        calls = []
        lookup = client.registry.get_schema_metadata_by_name

        def counting(name):
            calls.append(name)
            return lookup(name)

        monkeypatch.setattr(client.registry, "get_schema_metadata_by_name", counting)
        cached = SchemaRegistryClient(client.registry)
        cached.get_all_versions(DEVICE.key)
        cached.get_latest_schema(DEVICE.key)
        assert calls == [DEVICE.name]

    def test_failed_lookups_are_not_cached(self, client):
        with pytest.raises(SchemaNotFoundError):
            client.get_all_versions(DEVICE.key)
        client.register_schema(DEVICE, VersionedSchema(DEVICE_V1))
        assert len(client.get_all_versions(DEVICE.key)) == 1

    def test_cache_disabled(self, tmp_path):
        config = RegistryConfig(file_storage_path=str(tmp_path), cache_size=0)
        with SchemaRegistryClient.from_config(config) as client:
            key = client.register_schema(DEVICE, VersionedSchema(DEVICE_V1))
            assert client.get_schema(key) == client.get_schema(key)


# %% Files and SerDes
class TestSerDes:
    def test_upload_and_download(self, client, file_id):
        assert file_id == hashlib.sha256(SERDES_SOURCE).hexdigest()
        assert client.download_file(file_id).read() == SERDES_SOURCE

    def test_serializer_round_trip(self, client, key, file_id):
        serializer_id = client.add_serializer(
            SerDesInfo(name="json", class_name="acme.JsonSerializer", file_id=file_id)
        )
        deserializer_id = client.add_deserializer(
            SerDesInfo(name="json", class_name="acme.JsonDeserializer", file_id=file_id)
        )
        client.map_schema_with_serdes(DEVICE.key, serializer_id)
        client.map_schema_with_serdes(key.schema_metadata_id, deserializer_id)

        [serializer_info] = client.get_serializers(DEVICE.key)
        [deserializer_info] = client.get_deserializers(key.schema_metadata_id)
        assert serializer_info.id == serializer_id
        assert deserializer_info.id == deserializer_id

        with client.create_serializer_instance(serializer_info) as serializer:
            data = serializer.serialize({"id": 7}, DEVICE)
        deserializer = client.create_deserializer_instance(deserializer_info)

        assert isinstance(serializer, Serializer)
        assert isinstance(deserializer, Deserializer)
        assert deserializer.deserialize(data, DEVICE) == {"id": 7}

    def test_instances_are_not_shared(self, client, file_id):
        serializer_id = client.add_serializer(
            SerDesInfo(name="json", class_name="JsonSerializer", file_id=file_id)
        )
        info = client.registry.get_serdes(serializer_id)
        first = client.create_serializer_instance(info)
        second = client.create_serializer_instance(info)
        first.init({"prefix": ">"})

        assert first is not second
        assert first.serialize(1, DEVICE) == b">1"
        assert second.serialize(1, DEVICE) == b"1"

    def test_from_archive(self, client):
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as zf:
            zf.writestr("acme/__init__.py", "")
            zf.writestr("acme/serdes.py", SERDES_SOURCE.decode("utf-8"))
        file_id = client.upload_file(buffer.getvalue())
        serializer_id = client.add_serializer(
            SerDesInfo(
                name="json", class_name="acme.serdes.JsonSerializer", file_id=file_id
            )
        )
        info = client.registry.get_serdes(serializer_id)
        assert client.create_serializer_instance(info).serialize([1], DEVICE) == b"[1]"

    def test_wrong_capability(self, client, file_id):
        info = SerDesInfo(name="json", class_name="JsonSerializer", file_id=file_id)
        with pytest.raises(SerDesInstantiationError, match="is not a Deserializer"):
            client.create_deserializer_instance(info)

    def test_constructor_failure(self, client, file_id):
        info = SerDesInfo(name="bad", class_name="NeedsArguments", file_id=file_id)
        with pytest.raises(SerDesInstantiationError, match="Failed to construct"):
            client.create_serializer_instance(info)

    def test_missing_file(self, client):
        missing = hashlib.sha256(b"never uploaded").hexdigest()
        info = SerDesInfo(name="json", class_name="JsonSerializer", file_id=missing)
        with pytest.raises(SerDesFileNotFoundError) as excinfo:
            client.create_serializer_instance(info)
        assert isinstance(excinfo.value, NotFoundError)
        assert isinstance(excinfo.value, SerDesInstantiationError)

    def test_unmapped_schema(self, client, key):
        assert client.get_serializers(DEVICE.key) == []
        assert client.get_deserializers(DEVICE.key) == []


# %% Configuration and lifecycle
class TestLifecycle:
    def test_from_config_filesystem(self, tmp_path):
        config = RegistryConfig(
            store="filesystem",
            store_path=str(tmp_path / "store"),
            file_storage_path=str(tmp_path / "files"),
        )
        with SchemaRegistryClient.from_config(config) as client:
            key = client.register_schema(DEVICE, VersionedSchema(DEVICE_V1))
            assert isinstance(client.registry.store, FileSystemSchemaStore)

        with SchemaRegistryClient.from_config(config) as reopened:
            assert reopened.get_schema(key).schema_text == DEVICE_V1

    def test_close_is_idempotent(self, tmp_path):
        client = SchemaRegistryClient.from_config(
            RegistryConfig(file_storage_path=str(tmp_path))
        )
        client.close()
        client.close()

    def test_context_manager_closes_store(self, tmp_path, monkeypatch):
        closed = []
        with SchemaRegistryClient.from_config(
            RegistryConfig(file_storage_path=str(tmp_path))
        ) as client:
            monkeypatch.setattr(client.registry.store, "close", lambda: closed.append(1))
        assert closed == [1]

    def test_filesystem_store_without_path(self, tmp_path):
        config = RegistryConfig(
            store="filesystem",
            store_path=str(tmp_path / "store"),
            file_storage_path=str(tmp_path / "files"),
        )
        object.__setattr__(config, "store_path", None)
        with pytest.raises(RegistryConfigError, match="store_path is required"):
            SchemaRegistryClient.from_config(config)

    def test_serdes_without_assigned_id(self, client, file_id, monkeypatch):
        info = SerDesInfo(name="json", class_name="JsonSerializer", file_id=file_id)
        monkeypatch.setattr(client.registry, "add_serdes", lambda info, role: info)
        with pytest.raises(RegistryError, match="assigned no id"):
            client.add_serializer(info)
