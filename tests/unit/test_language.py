"""
Unit tests for source model parsing, checking and normalization.
"""

import json

import pytest

from modelforge.errors import ModelCacheError, ModelValidationError
from modelforge.language import Domain, build_domain, build_model_str


class TestBuildDomain:
    """Normalization of a valid source model."""

    def test_objects_sorted_and_named(self, shop_model):
        domain = build_model_str(json.dumps(shop_model))
        assert [o.name for o in domain.objects] == ["Customer", "Order"]
        assert [o.type_name for o in domain.objects] == ["Customer", "Order"]

    def test_attribute_names_snake_cased(self, shop_model):
        domain = build_model_str(json.dumps(shop_model))
        order = domain.objects[1]
        assert [(a.name, a.type) for a in order.attributes] == [("total", "float"), ("line_count", "integer")]

    def test_relationship_links_objects(self, shop_model):
        domain = build_model_str(json.dumps(shop_model))
        customer, order = domain.objects
        (rel,) = domain.relationships
        assert rel.from_id == order.id
        assert rel.to_id == customer.id
        assert domain.relationships_from(order) == [rel]
        assert domain.relationships_from(customer) == []
        assert domain.object_by_id(rel.to_id) is customer

    def test_object_by_id_unknown(self, shop_model):
        domain = build_model_str(json.dumps(shop_model))
        with pytest.raises(KeyError):
            domain.object_by_id(domain.id)

    def test_deterministic(self, shop_model):
        first = build_model_str(json.dumps(shop_model))
        shop_model["objects"].reverse()
        second = build_model_str(json.dumps(shop_model))
        assert first == second

    def test_defaults(self):
        domain = build_model_str('{"domain": "Tiny", "objects": [{"name": "thing", "attributes": [{"name": "x"}]}]}')
        (thing,) = domain.objects
        assert thing.type_name == "Thing"
        assert thing.attributes[0].type == "string"
        assert domain.relationships == ()

    def test_from_file(self, write_model_file, shop_model):
        domain = build_domain(write_model_file(shop_model))
        assert domain.name == "Shop"
        assert domain.description == "Things people buy."


class TestPersistLoad:
    """Derived model storage."""

    def test_persisted_domain_loads_back_equal(self, shop_model, temp_output_dir):
        domain = build_model_str(json.dumps(shop_model))
        target = domain.persist(temp_output_dir / "shop.v2.json")
        assert target.name == "domain.json"
        assert Domain.load(temp_output_dir / "shop.v2.json") == domain

    def test_load_missing(self, temp_output_dir):
        with pytest.raises(ModelCacheError, match="missing"):
            Domain.load(temp_output_dir / "nothing.v2.json")

    def test_load_garbage(self, temp_output_dir):
        derived = temp_output_dir / "bad.v2.json"
        derived.mkdir()
        (derived / "domain.json").write_text('{"name": "no id"}')
        with pytest.raises(ModelCacheError, match="unreadable"):
            Domain.load(derived)


class TestVerifySourceModel:
    """Semantic checks reject bad models with a message naming the culprit."""

    @pytest.mark.parametrize(
        "model, message",
        [
            (
                {"domain": "D", "objects": [{"name": "A"}, {"name": "A"}]},
                "object 'A' is declared more than once",
            ),
            (
                {"domain": "D", "objects": [{"name": "A", "attributes": [{"name": "Size"}, {"name": "size"}]}]},
                "attribute 'size' is declared more than once",
            ),
            (
                {"domain": "D", "objects": [{"name": "A", "attributes": [{"name": "x", "type": "decimal"}]}]},
                "unknown type 'decimal'",
            ),
            (
                {"domain": "D", "objects": [{"name": "A"}],
                 "relationships": [{"name": "R1", "from": "A", "to": "B"}]},
                "unknown object 'B'",
            ),
            (
                {"domain": "D", "objects": [{"name": "A"}],
                 "relationships": [{"name": "R1", "from": "A", "to": "A"}, {"name": "R1", "from": "A", "to": "A"}]},
                "relationship 'R1' is declared more than once",
            ),
        ],
    )
    def test_rejects(self, model, message):
        with pytest.raises(ModelValidationError, match=message):
            build_model_str(json.dumps(model))

    def test_schema_errors(self):
        with pytest.raises(ModelValidationError, match="Invalid model"):
            build_model_str('{"objects": []}')

    def test_bad_cardinality(self):
        model = {"domain": "D", "objects": [{"name": "A"}],
                 "relationships": [{"name": "R1", "from": "A", "to": "A", "cardinality": "several"}]}
        with pytest.raises(ModelValidationError):
            build_model_str(json.dumps(model))

    def test_not_json_file(self, write_model_file):
        with pytest.raises(ModelValidationError, match="not valid JSON"):
            build_domain(write_model_file("{", "broken.json"))


class TestUnreadableFiles:
    """Bytes that are not UTF-8 are reported against the file, not as a crash."""

    def test_model_not_utf8(self, package_root):
        source = package_root / "models" / "shop.json"
        source.write_bytes(b'{"domain": "\xff\xfe"}')
        with pytest.raises(ModelValidationError, match="Unable to read model file .*shop.json"):
            build_domain(source)

    def test_model_is_a_directory(self, package_root):
        folder = package_root / "models" / "folder.json"
        folder.mkdir()
        with pytest.raises(ModelValidationError, match="folder.json"):
            build_domain(folder)

    def test_derived_model_not_utf8(self, temp_output_dir):
        derived = temp_output_dir / "shop.v2.json"
        derived.mkdir()
        (derived / "domain.json").write_bytes(b"\xff\xfe")
        with pytest.raises(ModelCacheError, match="Unable to read derived model"):
            Domain.load(derived)
