from pathlib import Path
import traceback

import click

from datetime import date
from rich.console import Console
from rich.markup import escape

from modelforge import __version__
from modelforge.backends import BackendRegistry, create_default_registry
from modelforge.errors import ModuleDirectoryMissing, NothingToDo, OrchestrationError
from modelforge.gen_logging import configure_gen_logging
from modelforge.orchestrator import BackendOverride, Orchestrator
from modelforge.paths import CONFIG_FILE, find_package_root

console = Console()

# Declares the per-backend flags of `gen`; never mutated after creation.
REGISTRY = create_default_registry()

_RESERVED_PARAMS = {"modules", "compiler"}


def _stamp() -> str:
    return date.today().strftime('%Y-%m-%d')


def backend_option_flags(registry: BackendRegistry):
    """
    Add one click option per backend option field found in *registry*.

    Boolean fields become `--name/--no-name` switches; everything else takes
    a value. Every flag defaults to None, meaning "not given on the command
    line", so that persisted values and defaults still apply.
    """
    def decorator(f):
        seen = set()
        for backend in reversed(list(registry)):
            fields = backend.options_model.model_fields
            for name, field in reversed(list(fields.items())):
                if name in seen or name in _RESERVED_PARAMS:
                    continue
                seen.add(name)
                flag = name.replace("_", "-")
                help_text = f"[{backend.kind}] {field.description or name}"
                if field.annotation is bool:
                    f = click.option(f"--{flag}/--no-{flag}", name, default=None, help=help_text)(f)
                else:
                    f = click.option(f"--{flag}", name, default=None, help=help_text)(f)
        return f
    return decorator


def _split_modules(values) -> list[str] | None:
    """`-m a,b -m c` -> ["a", "b", "c"]; no flag at all -> None (every module)."""
    if not values:
        return None
    names = []
    for value in values:
        names.extend(value.split(","))
    return names


def _package_root(options: dict) -> Path:
    package_dir = options["package_dir"]
    if package_dir is not None and not package_dir.is_dir():
        raise ModuleDirectoryMissing(f"Package directory {package_dir} does not exist.")
    return find_package_root(package_dir or Path.cwd())


def _orchestrator(context) -> Orchestrator:
    options = context.obj
    return Orchestrator(
        _package_root(options),
        config_name=options["config_name"],
        dry_run=options["dry_run"],
    )


def _fail(context, what: str, error: OrchestrationError):
    style = "yellow" if isinstance(error, NothingToDo) else "red"
    console.print(f"[{_stamp()}] {what}: {escape(str(error))}", style=style)
    context.exit(error.exit_code)


def _crash(context, what: str, error: Exception):
    console.print(f"[{_stamp()}] {what} with unexpected error: {escape(str(error))}", style="red")
    tb_lines = traceback.format_exc().splitlines()
    console.print(escape("\n".join(tb_lines[-50:])), style="red")
    context.exit(1)


@click.group()
@click.version_option(__version__, prog_name="modelforge")
@click.option("-t", "--test", "dry_run", is_flag=True, help="Test mode: validate and report, but write nothing.")
@click.option("-c", "--config", "config_name", default=CONFIG_FILE, show_default=True,
              help="Configuration file, relative to the package root or absolute.")
@click.option("-p", "--package-dir", type=click.Path(path_type=Path), default=None,
              help="Where to start looking for the package root (default: current directory).")
@click.option("-v", "--verbose", is_flag=True, help="Debug output.")
@click.option("-q", "--quiet", is_flag=True, help="Warnings and errors only.")
@click.pass_context
def cli(context, dry_run, config_name, package_dir, verbose, quiet):
    context.ensure_object(dict)
    configure_gen_logging(verbose=verbose, quiet=quiet)
    if dry_run:
        console.print("Running in test mode.", style="yellow")
    context.obj.update(
        dry_run=dry_run,
        config_name=config_name,
        package_dir=package_dir,
    )


@cli.command("new", help="Create a new domain: declare a module and scaffold its model file and package.")
@click.pass_context
@click.argument("domain")
@click.argument("module", required=False)
def new_cmd(context, domain, module):
    """
    DOMAIN names the new domain; MODULE names the generated package and
    defaults to the domain name. Both are snake-cased.
    """
    try:
        orchestrator = _orchestrator(context)
        spec = orchestrator.new_module(domain, module)
    except OrchestrationError as e:
        _fail(context, "New domain failed", e)
    except Exception as e:
        _crash(context, "New domain failed", e)
    else:
        console.print(
            f"[{_stamp()}] Created new domain {escape(domain)} in {escape(str(orchestrator.root))}",
            style="green",
        )
        console.print(f"The module will be called {escape(spec.name)}.")
        context.exit(0)


@cli.command("gen", help="Generate code for the declared modules.")
@click.pass_context
@click.option("-m", "--modules", multiple=True,
              help="Comma separated module names (repeatable). Default: every declared module.")
@click.option("--compiler", type=click.Choice(REGISTRY.kinds()), default=None,
              help="Use this compiler for every targeted module, for this run only.")
@backend_option_flags(REGISTRY)
def gen_cmd(context, modules, compiler, **backend_options):
    explicit = {name: value for name, value in backend_options.items() if value is not None}
    if explicit and compiler is None:
        raise click.UsageError(
            f"Compiler options ({', '.join(sorted(explicit))}) need --compiler.", ctx=context
        )
    if compiler is not None:
        valid = REGISTRY.get(compiler).options_model.model_fields
        stray = sorted(set(explicit) - set(valid))
        if stray:
            raise click.UsageError(
                f"Option(s) {', '.join(stray)} do not apply to compiler '{compiler}'.", ctx=context
            )

    override = BackendOverride(kind=compiler, options=explicit) if compiler else None

    try:
        orchestrator = _orchestrator(context)
        report = orchestrator.generate(_split_modules(modules), override)
    except OrchestrationError as e:
        _fail(context, "Generate failed", e)
    except Exception as e:
        _crash(context, "Generate failed", e)
    else:
        for name in report.skipped:
            console.print(
                f"[{_stamp()}] No module named {escape(name)} found in {escape(orchestrator.config_file.name)}!",
                style="yellow",
            )
        for outcome in report.outcomes:
            rebuilt = ", model rebuilt" if outcome.was_rebuilt else ""
            console.print(
                f"[{_stamp()}] Generated code for module {escape(outcome.name)} "
                f"from {escape(outcome.model_path.name)} ({outcome.backend}{rebuilt})",
                style="green",
            )
        verb = "Checked" if report.dry_run else "Generated"
        console.print(f"[{_stamp()}] {verb} {len(report.generated)} module(s).", style="green")
        context.exit(0)


def main():
    cli(prog_name="modelforge")
