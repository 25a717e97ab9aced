"""Rich terminal output for rendered profile reports."""
from __future__ import annotations

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text
from rich.tree import Tree

from profdump import __version__
from profdump.output.formatting import format_address, format_duration, format_time
from profdump.report import Report, Section, SectionKind

FRAME_TYPE_STYLES = {
    "native": "cyan",
    "kernel": "magenta",
    "go": "green",
    "cpython": "yellow",
    "python": "yellow",
    "jvm": "blue",
    "unknown": "dim",
}


def render_terminal(report: Report, console: Console | None = None) -> None:
    """Print the report to ``console`` (a fresh stdout Console by default)."""
    if console is None:
        console = Console()
    _render_header(report, console)
    for section in report.sections:
        if section.kind == SectionKind.RESOURCE_SKIPPED:
            _render_skipped_resource(section, console)
        else:
            _render_resource(section, console)
    _render_footer(report, console)


def _render_header(report: Report, console: Console) -> None:
    header = Text()
    header.append("  PROFDUMP ", style="bold white")
    header.append(f"v{__version__} -- profiles report", style="dim")
    if report.source:
        header.append(f"  {report.source}", style="dim")
    console.print(Panel(header, style="bold blue"))


def _render_skipped_resource(section: Section, console: Console) -> None:
    console.rule(f"[bold]Resource {section.fields['index']}[/bold]", style="dim")
    console.print(f"  [dim]SKIPPED ({escape(section.fields['reason'])})[/dim]")
    console.print()


def _render_resource(section: Section, console: Console) -> None:
    title = f"Resource {section.fields['index']}"
    if section.fields["container_id"]:
        title += f"  container {escape(section.fields['container_id'])}"
    console.rule(f"[bold]{title}[/bold]", style="bold")
    for key, value in section.attributes:
        console.print(f"  [dim]{escape(key)}:[/dim] {escape(value)}")

    for scope in section.children:
        label = "Scope"
        if scope.fields["name"]:
            label += f" {escape(scope.fields['name'])} {escape(scope.fields['version'])}"
        tree = Tree(f"[bold]{label.rstrip()}[/bold]")
        for child in scope.children:
            _add_profile(tree, child)
        console.print(tree)
    console.print()


def _add_profile(tree: Tree, section: Section) -> None:
    f = section.fields
    if section.kind == SectionKind.PROFILE_SKIPPED:
        tree.add(f"[dim]Profile {f['profile_id']}  SKIPPED "
                 f"(sample type {escape(repr(f['sample_type']))})[/dim]")
        return
    if section.kind == SectionKind.PROFILE_ERROR:
        tree.add(f"[bold red]Profile {f['profile_id']}  ERROR[/bold red] {escape(f['error'])}")
        return

    node = tree.add(
        f"[bold]Profile {f['profile_id']}[/bold]  "
        f"{escape(f['sample_type'])}/{escape(f['sample_unit'])}  "
        f"[dim]{format_time(f['time_unix_nano'])}, {format_duration(f['duration_nano'])}, "
        f"period {f['period']} {escape(f['period_type'])}/{escape(f['period_unit'])}[/dim]"
    )
    for key, value in section.attributes:
        node.add(f"[dim]{escape(key)}:[/dim] {escape(value)}")
    for i, sample in enumerate(section.children):
        _add_sample(node, i, sample)


def _add_sample(tree: Tree, index: int, section: Section) -> None:
    f = section.fields
    stamps = ", ".join(format_time(ts) for ts in f["timestamps_unix_nano"]) or "no timestamps"
    label = f"Sample {index}  [dim]{stamps}[/dim]"
    if f["values"]:
        label += f"  values {f['values']}"
    node = tree.add(label)
    for key, value in section.attributes:
        node.add(f"[dim]{escape(key)}:[/dim] {escape(value)}")
    for frame in section.children:
        node.add(_frame_label(frame))


def _frame_label(section: Section) -> str:
    f = section.fields
    style = FRAME_TYPE_STYLES.get(f["frame_type"], "white")
    tag = f"[{style}]{escape(f['frame_type'])}[/{style}]"
    if not f["resolved"]:
        return f"{tag} {format_address(f['address'])}  [dim]{escape(f['mapping'])}[/dim]"
    return (f"{tag} {escape(f['function'])}  "
            f"[dim]{escape(f['file'])}:{f['line']}:{f['column']}[/dim]")


def _render_footer(report: Report, console: Console) -> None:
    counts = report.counts()
    parts = [
        f"{counts[SectionKind.RESOURCE]} resources",
        f"{counts[SectionKind.PROFILE]} profiles",
        f"{counts[SectionKind.SAMPLE]} samples",
        f"{counts[SectionKind.FRAME]} frames",
    ]
    skipped = counts[SectionKind.RESOURCE_SKIPPED] + counts[SectionKind.PROFILE_SKIPPED]
    if skipped:
        parts.append(f"{skipped} skipped")
    errors = counts[SectionKind.PROFILE_ERROR]
    if errors:
        parts.append(f"[bold red]{errors} errors[/bold red]")
    console.print(f" [bold]{' · '.join(parts)}[/bold]")
