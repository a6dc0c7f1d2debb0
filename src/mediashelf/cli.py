from __future__ import annotations

from dataclasses import dataclass
import json
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.table import Table

from mediashelf.config import default_config_path, load_config, write_default_config
from mediashelf.errors import MediaShelfError
from mediashelf.service import MediaShelfService
from mediashelf.util.logging import setup_logging, use_color

app = typer.Typer(help="mediashelf: ordered media collections with thumbnails")


@dataclass(slots=True)
class AppState:
    service: MediaShelfService
    console: Console
    config_path: Path


def _state(ctx: typer.Context) -> AppState:
    st = ctx.obj
    if not isinstance(st, AppState):
        raise RuntimeError("app state not initialized")
    return st


def _emit_obj(console: Console, obj: dict, json_out: bool) -> None:
    if json_out:
        typer.echo(json.dumps(obj, indent=2))
        return
    for k, v in obj.items():
        if v is None or v == []:
            continue
        console.print(f"[bold]{k}[/bold]: {v}")


def _caption_text(caption: Any) -> str:
    if isinstance(caption, dict):
        return " | ".join(f"{lang}: {text}" for lang, text in caption.items())
    if caption == "":
        return "[dim](none)[/dim]"
    return str(caption)


def _run(st: AppState, json_out: bool, fn, *args: Any, **kwargs: Any) -> None:
    try:
        result = fn(*args, **kwargs)
    except MediaShelfError as exc:
        st.console.print(f"[red]{type(exc).__name__}:[/red] {exc.message}")
        if exc.detail:
            st.console.print(f"[dim]{exc.detail}[/dim]")
        raise typer.Exit(1) from exc
    _emit_obj(st.console, result, json_out)


@app.callback()
def main(
    ctx: typer.Context,
    config: Annotated[Path | None, typer.Option("--config", help="Config YAML path")] = None,
    directory: Annotated[Path | None, typer.Option("--dir", help="Media directory (overrides config)")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Verbose logging")] = False,
) -> None:
    setup_logging(verbose)
    cfg_path = config.expanduser() if config else default_config_path()
    if not cfg_path.exists():
        write_default_config(cfg_path)
    overrides = {"directory": str(directory.expanduser())} if directory else None
    cfg = load_config(cfg_path, overrides=overrides)
    color_on = use_color()
    console = Console(color_system="auto" if color_on else None, force_terminal=color_on)
    ctx.obj = AppState(
        service=MediaShelfService(cfg),
        console=console,
        config_path=cfg_path,
    )


@app.command("init-config")
def init_config(
    ctx: typer.Context,
    path: Annotated[Path | None, typer.Option("--path", help="Write config to this path")] = None,
    json_out: Annotated[bool, typer.Option("--json")] = False,
) -> None:
    st = _state(ctx)
    written = write_default_config(path.expanduser() if path else None)
    _emit_obj(st.console, {"config_path": str(written)}, json_out)


@app.command("ingest")
def ingest_cmd(
    ctx: typer.Context,
    file: Annotated[Path, typer.Argument(help="File to add", exists=True, dir_okay=False)],
    mime: Annotated[str | None, typer.Option("--mime", help="Declared mime type (guessed from the name if omitted)")] = None,
    json_out: Annotated[bool, typer.Option("--json")] = False,
) -> None:
    st = _state(ctx)
    _run(st, json_out, st.service.ingest, file, mime_type=mime)


@app.command("reorder")
def reorder_cmd(
    ctx: typer.Context,
    keys: Annotated[list[str], typer.Argument(help="Every storage key, in the new order")],
    json_out: Annotated[bool, typer.Option("--json")] = False,
) -> None:
    st = _state(ctx)
    _run(st, json_out, st.service.reorder, list(keys))


@app.command("show")
def show_cmd(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Storage key")],
    json_out: Annotated[bool, typer.Option("--json")] = False,
) -> None:
    st = _state(ctx)
    _run(st, json_out, st.service.show, key)


@app.command("hide")
def hide_cmd(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Storage key")],
    json_out: Annotated[bool, typer.Option("--json")] = False,
) -> None:
    st = _state(ctx)
    _run(st, json_out, st.service.hide, key)


@app.command("delete")
def delete_cmd(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Storage key")],
    json_out: Annotated[bool, typer.Option("--json")] = False,
) -> None:
    st = _state(ctx)
    _run(st, json_out, st.service.delete, key)


@app.command("data")
def data_cmd(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Storage key")],
    caption: Annotated[str | None, typer.Option("--caption", help="Caption; '_' marks it deliberately blank")] = None,
    caption_lang: Annotated[
        list[str] | None, typer.Option("--caption-lang", help="Localized caption as lang=text (repeatable)")
    ] = None,
    tag: Annotated[str | None, typer.Option("--tag", help="'+tag' adds, '-tag' removes")] = None,
    set_tags: Annotated[str | None, typer.Option("--set-tags", help="Comma-separated list replacing all tags")] = None,
    json_out: Annotated[bool, typer.Option("--json")] = False,
) -> None:
    st = _state(ctx)
    caption_value: str | dict[str, str] | None = caption
    if caption_lang:
        texts: dict[str, str] = {}
        for item in caption_lang:
            lang, sep, text = item.partition("=")
            if not sep or not lang.strip():
                raise typer.BadParameter(f"expected lang=text, got {item!r}", param_hint="--caption-lang")
            texts[lang.strip()] = text
        caption_value = texts
    tag_value: str | list[str] | None = tag
    if set_tags is not None:
        tag_value = [t.strip() for t in set_tags.split(",") if t.strip()]
    _run(st, json_out, st.service.update_data, key, caption=caption_value, tag=tag_value)


@app.command("list")
def list_cmd(
    ctx: typer.Context,
    json_out: Annotated[bool, typer.Option("--json")] = False,
) -> None:
    st = _state(ctx)
    rows = st.service.list_entries()
    if json_out:
        typer.echo(json.dumps(rows, indent=2, ensure_ascii=False))
        return
    if not rows:
        st.console.print("[dim]no media[/dim]")
        return
    table = Table(title="media")
    table.add_column("pos")
    table.add_column("key")
    table.add_column("type")
    table.add_column("sizes")
    table.add_column("caption")
    table.add_column("tags")
    table.add_column("received")
    for row in rows:
        table.add_row(
            str(row["position"]),
            str(row["storage_key"]),
            str(row["source_mime_type"]),
            ", ".join(row["derived_sizes"]) or "[dim]original[/dim]",
            _caption_text(row["caption"]),
            ", ".join(row["tags"]),
            f"{row['received_name']} ({row['received_size']} B, {row['received_at']})",
        )
    st.console.print(table)


if __name__ == "__main__":
    app()
