"""
Checks against a real Unity bundle.

Set UNITY_TYPETREE_TEST_BUNDLE to the path of the test bundle to run these.
"""

import os

import pytest

from unity_typetree.core.objects import Mesh
from unity_typetree.core.references import resolve_reference
from unity_typetree.core.serialized_file import SerializedFileContext

BUNDLE = os.environ.get("UNITY_TYPETREE_TEST_BUNDLE")
FILE_NAME = "CAB-5d40f7cad7c871cf2ad2af19ac542994"
MESH_ID = -7865028809519950684
OWNER_ID = -4606375687431940004

pytestmark = pytest.mark.skipif(not BUNDLE, reason="UNITY_TYPETREE_TEST_BUNDLE not set")


@pytest.fixture(scope="module")
def ctx():
    with SerializedFileContext(BUNDLE, file_name=FILE_NAME) as context:
        yield context


def test_mesh_fields(ctx):
    reader = ctx.reader(MESH_ID)

    assert reader["m_Name"].value("string") == "Lame"
    assert reader["m_SubMeshes"][0]["vertexCount"].value("uint32") == 228
    assert reader["m_IsReadable"].value("bool") is False


def test_mesh_projection(ctx):
    mesh = ctx.read(MESH_ID, Mesh.read)

    assert mesh.name == "Lame"
    assert mesh.rw_enabled is False


def test_managed_references(ctx):
    owner = ctx.reader(OWNER_ID)
    references = owner["references"]

    first = resolve_reference(owner["m_Item"], references)
    second = resolve_reference(owner["m_Item2"], references)

    assert first["data"]["m_Data"].value("int32") == 1
    assert second["data"]["m_Data"].value("int32") == 1
    descriptions = {entry["data"]["m_Description"].value() for entry in (first, second)}
    assert "Ripe" in descriptions
