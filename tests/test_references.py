import pytest

from unity_typetree.core.errors import ReferenceNotFound, TypeNotFound
from unity_typetree.core.references import (
    parse_reference_key,
    reference_id,
    reference_key,
    resolve_reference,
)
from unity_typetree.core.typetree import TypeTreeNode

from builders import Buf, leaf, make_reader, registry_v1, registry_v2, root, string, struct_node

ASSEMBLY = "Assembly-CSharp"
APPLE = root("Apple", leaf("int", "m_Data"), string("m_Description"))


class FruitSchemas:
    def __init__(self):
        self.requests = []

    def get_ref_type_typetree_root(self, class_name: str, namespace: str, assembly: str) -> TypeTreeNode:
        self.requests.append((class_name, namespace, assembly))
        if (class_name, namespace, assembly) == ("Apple", "", ASSEMBLY):
            return APPLE
        raise TypeNotFound(f"{class_name} not in test schemas")


def owner_v2():
    return root(
        "Basket",
        struct_node("managedReference", "m_Item", leaf("SInt64", "rid")),
        struct_node("managedReference", "m_Item2", leaf("SInt64", "rid")),
        registry_v2(),
        leaf("int", "m_After"),
    )


def build_v2(entries, after=77):
    buf = Buf().i64(1000).i64(2000)
    buf.i32(2).i32(len(entries))
    for rid, class_name, data in entries:
        buf.i64(rid).managed_type(class_name, "", ASSEMBLY if class_name else "")
        if class_name:
            buf.write(APPLE, data)
    buf.align()
    after_offset = buf.tell()
    buf.i32(after)
    return buf, after_offset


V2_ENTRIES = [
    (1000, "Apple", {"m_Data": 1, "m_Description": "Ripe"}),
    (2000, "Apple", {"m_Data": 2, "m_Description": "Lame"}),
]


class TestRegistryV2:
    def test_resolves_owner_ids(self):
        buf, _ = build_v2(V2_ENTRIES)
        basket = make_reader(owner_v2(), buf, schemas=FruitSchemas())
        references = basket["references"]

        first = resolve_reference(basket["m_Item"], references)
        second = resolve_reference(basket["m_Item2"], references)

        assert first["data"]["m_Data"].value() == 1
        assert first["data"]["m_Description"].value() == "Ripe"
        assert second["data"]["m_Description"].value() == "Lame"

    def test_synthetic_keys(self):
        buf, _ = build_v2(V2_ENTRIES)
        references = make_reader(owner_v2(), buf, schemas=FruitSchemas())["references"]

        assert references.has_field("rid(2000)")
        assert references["rid(2000)"].name == "rid(2000)"
        assert references["rid(2000)"]["rid"].value() == 2000
        assert not references.has_field("rid(3)")
        assert references.has_field("version")
        assert references.registry.ids() == [1000, 2000]
        assert len(references.registry) == 2

    def test_synthetic_keys_only_on_registry(self):
        buf, _ = build_v2(V2_ENTRIES)
        basket = make_reader(owner_v2(), buf, schemas=FruitSchemas())

        assert not basket.has_field("rid(1000)")
        assert not basket["m_Item"].has_field("rid(1000)")

    def test_missing_and_null_ids(self):
        buf, _ = build_v2(V2_ENTRIES)
        references = make_reader(owner_v2(), buf, schemas=FruitSchemas())["references"]

        with pytest.raises(ReferenceNotFound) as exc:
            references["rid(5)"]
        assert isinstance(exc.value, KeyError)
        assert not references.has_field("rid(-2)")
        with pytest.raises(ReferenceNotFound):
            references.registry.find(-1)

    def test_sibling_after_registry(self):
        buf, after_offset = build_v2(V2_ENTRIES, after=123)
        basket = make_reader(owner_v2(), buf, schemas=FruitSchemas())

        assert basket["m_After"].offset == after_offset
        assert basket["m_After"].value() == 123

    def test_null_type_entry_has_empty_payload(self):
        buf, after_offset = build_v2([(1000, "", None), V2_ENTRIES[1]])
        schemas = FruitSchemas()
        basket = make_reader(owner_v2(), buf, schemas=schemas)

        assert basket["references"]["rid(1000)"]["data"].keys() == []
        assert basket["references"]["rid(2000)"]["data"]["m_Data"].value() == 2
        assert basket["m_After"].offset == after_offset
        assert schemas.requests == [("Apple", "", ASSEMBLY)]

    def test_sibling_first_then_entries_share_registry(self):
        buf, after_offset = build_v2([(1000, "", None), V2_ENTRIES[1]])
        schemas = FruitSchemas()
        basket = make_reader(owner_v2(), buf, schemas=schemas)

        assert basket["m_After"].offset == after_offset
        assert basket["references"] is basket["references"]
        assert basket["references"]["rid(2000)"]["data"]["m_Description"].value() == "Lame"
        assert basket["references"]["rid(1000)"]["data"].keys() == []
        assert schemas.requests == [("Apple", "", ASSEMBLY)]

    def test_has_field_raises_on_undecodable_entry(self):
        buf, _ = build_v2(V2_ENTRIES)
        references = make_reader(owner_v2(), buf)["references"]

        with pytest.raises(TypeNotFound):
            references.has_field("rid(2000)")
        assert not references.has_field("m_Missing")

    def test_payload_schema_resolved_once_per_type(self):
        buf, _ = build_v2(V2_ENTRIES)
        schemas = FruitSchemas()
        references = make_reader(owner_v2(), buf, schemas=schemas)["references"]

        references["rid(2000)"]

        assert schemas.requests == [("Apple", "", ASSEMBLY)]

    def test_unknown_type_without_schema(self):
        buf, _ = build_v2(V2_ENTRIES)
        references = make_reader(owner_v2(), buf)["references"]

        with pytest.raises(TypeNotFound):
            references["rid(1000)"]

    def test_to_python(self):
        buf, _ = build_v2(V2_ENTRIES)
        basket = make_reader(owner_v2(), buf, schemas=FruitSchemas())

        data = basket.to_python()

        assert data["m_Item"] == {"rid": 1000}
        assert data["references"]["version"] == 2
        assert data["references"]["references"]["rid(2000)"]["data"] == {
            "m_Data": 2,
            "m_Description": "Lame",
        }
        assert data["m_After"] == 77


def owner_v1():
    return root(
        "Basket",
        struct_node("managedReference", "m_Item", leaf("int", "id")),
        registry_v1(),
        leaf("int", "m_After"),
    )


def build_v1():
    buf = Buf().i32(0)
    buf.i32(1)
    buf.managed_type("Apple", "", ASSEMBLY).write(APPLE, {"m_Data": 5, "m_Description": "Green"})
    buf.managed_type("Apple", "", ASSEMBLY).write(APPLE, {"m_Data": 6, "m_Description": "Red"})
    buf.managed_type("Terminus", "UnityEngine.DMAT", "FAKE_ASM")
    after_offset = buf.tell()
    buf.i32(31)
    return buf, after_offset


class TestRegistryV1:
    def test_ids_are_positional(self):
        buf, _ = build_v1()
        basket = make_reader(owner_v1(), buf, schemas=FruitSchemas())

        assert basket["references"].registry.ids() == [0, 1]
        assert basket["references"]["rid(1)"]["data"]["m_Description"].value() == "Red"

    def test_owner_id_resolves(self):
        buf, _ = build_v1()
        basket = make_reader(owner_v1(), buf, schemas=FruitSchemas())

        assert reference_id(basket["m_Item"]) == 0
        entry = resolve_reference(basket["m_Item"], basket["references"])
        assert entry["data"]["m_Data"].value() == 5

    def test_terminus_stops_scan(self):
        buf, after_offset = build_v1()
        basket = make_reader(owner_v1(), buf, schemas=FruitSchemas())

        assert not basket["references"].has_field("rid(2)")
        assert basket["m_After"].offset == after_offset
        assert basket["m_After"].value() == 31


def test_reference_keys():
    assert reference_key(42) == "rid(42)"
    assert parse_reference_key("rid(-7865028809519950684)") == -7865028809519950684
    assert parse_reference_key("rid(x)") is None
    assert parse_reference_key("m_Name") is None
