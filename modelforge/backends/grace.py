"""Grace: renders a domain into Python dataclasses and an object store."""

from __future__ import annotations

import keyword
from pathlib import Path

from black.parsing import InvalidInput
from pydantic import Field

from modelforge.backends.base import Backend, BackendOptions, write_generated
from modelforge.errors import BackendError
from modelforge.gen_logging import get_logger
from modelforge.language import Domain
from modelforge.paths import module_source_dir
from modelforge.templates import env as jinja_env
from modelforge.templates import doctest_value, py_type
from modelforge.utils import format_python_code, to_snake_case

logger = get_logger(__name__)

TEMPLATES: dict[str, str] = {
    "grace/types.py.jinja": "types.py",
    "grace/store.py.jinja": "store.py",
}

RESERVED_NAMES = {"id", "cls", "new"}


class GraceOptions(BackendOptions):
    meta: bool = Field(False, description="Absolute <package>.<module> imports between generated files.")
    new: bool = Field(True, description="Emit new() constructors.")
    doc_tests: bool = Field(True, description="Emit doctest examples on new(); needs new.")


class GraceBackend(Backend):
    kind = "grace"
    description = "Python dataclasses plus an in-memory object store."
    options_model = GraceOptions

    def compile(
        self,
        model: Domain,
        package_context: str,
        module_name: str,
        output_root: Path,
        options: GraceOptions,
        dry_run: bool,
    ) -> list[Path]:
        if options.doc_tests and not options.new:
            logger.warning(f"[DISPATCH] doc_tests has no effect on '{module_name}' without new")

        objects = [_object_context(model, obj, module_name) for obj in model.objects]
        type_names = [o["type_name"] for o in objects]
        for type_name in type_names:
            if not type_name.isidentifier() or keyword.iskeyword(type_name):
                raise BackendError(self.kind, module_name, f"'{type_name}' is not a valid class name.")
            if type_names.count(type_name) > 1:
                raise BackendError(self.kind, module_name, f"more than one object maps to class '{type_name}'.")

        ctx = dict(
            domain=model,
            objects=objects,
            options=options,
            package=package_context,
            module=module_name,
        )

        target_dir = module_source_dir(output_root, module_name)
        written = []
        for tmpl_name, rel_path in TEMPLATES.items():
            text = jinja_env.get_template(tmpl_name).render(**ctx)
            try:
                text = format_python_code(text)
            except InvalidInput as e:
                raise BackendError(self.kind, module_name, f"generated {rel_path} does not parse: {e}") from e
            written.append(write_generated(target_dir / rel_path, text, dry_run))

        logger.info(f"[GENERATED] grace: {len(written)} file(s) for '{module_name}' in {target_dir}")
        return written


def _object_context(model: Domain, obj, module_name: str) -> dict:
    """Template context for one domain object."""
    references = []
    for rel in model.relationships_from(obj):
        target = model.object_by_id(rel.to_id)
        references.append({
            "name": f"{to_snake_case(target.name)}_{rel.name.lower()}",
            "relationship": rel.name,
            "cardinality": rel.cardinality,
            "target": target.type_name,
            "description": rel.description,
        })

    params = [
        {"name": a.name, "hint": py_type(a.type), "example": doctest_value(a.type)}
        for a in obj.attributes
    ] + [
        {"name": r["name"], "hint": "uuid.UUID", "example": doctest_value("uuid")}
        for r in references
    ]

    for p in params:
        if keyword.iskeyword(p["name"]) or p["name"] in RESERVED_NAMES or not p["name"].isidentifier():
            raise BackendError(
                GraceBackend.kind,
                module_name,
                f"'{obj.name}.{p['name']}' cannot be used as a Python attribute name.",
            )

    return {
        "name": obj.name,
        "type_name": obj.type_name,
        "store_name": to_snake_case(obj.name),
        "description": obj.description,
        "attributes": obj.attributes,
        "references": references,
        "params": params,
    }
