from __future__ import annotations
import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from .bootstrap import build_service
from .client.service import OllamaService
from .core.chat_session import ChatSession
from .core.errors import OllamaError

app = typer.Typer(add_completion=False, no_args_is_help=True)
console = Console()


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", help="YAML config (defaults to env / localhost)."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = {"config": config}


def _fail(e: Exception) -> typer.Exit:
    typer.echo(f"error: {e}", err=True)
    return typer.Exit(code=1)


def _run(ctx: typer.Context, fn: Callable[[OllamaService], Awaitable[Any]]) -> Any:
    async def runner():
        async with build_service(ctx.obj["config"]) as service:
            return await fn(service)
    try:
        return asyncio.run(runner())
    except (OllamaError, FileNotFoundError) as e:
        raise _fail(e)


def _size(n: Optional[int]) -> str:
    if not n:
        return "-"
    for unit in ("B", "KB", "MB", "GB"):
        if n < 1024:
            return f"{n:.0f} {unit}"
        n /= 1024
    return f"{n:.1f} TB"


@app.command("list")
def list_models(ctx: typer.Context):
    """Models available on the server."""
    models = _run(ctx, lambda s: s.list())
    table = Table("NAME", "SIZE", "MODIFIED")
    for m in models:
        table.add_row(m.get("name", ""), _size(m.get("size")), str(m.get("modified_at", "")))
    console.print(table)


@app.command()
def ps(ctx: typer.Context):
    """Models currently loaded in memory."""
    models = _run(ctx, lambda s: s.ps())
    table = Table("NAME", "VRAM", "EXPIRES")
    for m in models:
        table.add_row(m.get("name", ""), _size(m.get("size_vram")), str(m.get("expires_at", "")))
    console.print(table)


@app.command()
def show(ctx: typer.Context, model: str):
    data = _run(ctx, lambda s: s.show(model))
    console.print_json(data=data)


@app.command()
def pull(ctx: typer.Context, model: str, insecure: bool = typer.Option(False, "--insecure")):
    async def go(service: OllamaService):
        async with await service.pull_stream(model, insecure=insecure) as stream:
            async for event in stream:
                status = event.get("status", "")
                if event.get("total"):
                    pct = 100 * (event.get("completed") or 0) / event["total"]
                    console.print(f"{status} {pct:5.1f}%")
                else:
                    console.print(status)
    _run(ctx, go)


@app.command()
def generate(
    ctx: typer.Context,
    model: str,
    prompt: str,
    system: Optional[str] = typer.Option(None, "--system"),
    no_stream: bool = typer.Option(False, "--no-stream"),
):
    request = {"model": model, "prompt": prompt}
    if system:
        request["system"] = system

    async def go(service: OllamaService):
        if no_stream:
            reply = await service.generate(request)
            typer.echo(reply.get("response", ""))
            return
        async with await service.generate_stream(request) as stream:
            async for event in stream:
                typer.echo(event.get("response") or "", nl=False)
                if event.get("done"):
                    break
        typer.echo("")
    _run(ctx, go)


@app.command()
def chat(ctx: typer.Context, model: str, system: Optional[str] = typer.Option(None, "--system")):
    """Interactive chat. /help for commands, Ctrl+C interrupts a reply."""
    with asyncio.Runner() as runner:
        try:
            service = build_service(ctx.obj["config"])
        except (OllamaError, FileNotFoundError) as e:
            raise _fail(e)
        session = ChatSession(service, model, system_prompt=system)

        async def turn(text: str):
            async for piece in session.run_turn_stream(text):
                typer.echo(piece, nl=False)
            typer.echo("")

        typer.echo(f"Chatting with {model}. Type /help for commands. Ctrl+C to quit.")
        try:
            while True:
                try:
                    user_input = input(">>> ").strip()
                except (EOFError, KeyboardInterrupt):
                    typer.echo("\nBye.")
                    return
                if not user_input:
                    continue
                if user_input in ("/exit", "/quit"):
                    typer.echo("Bye.")
                    return
                if user_input == "/help":
                    typer.echo("Commands: /help, /reset, /exit, /quit")
                    continue
                if user_input == "/reset":
                    session.reset()
                    continue
                try:
                    runner.run(turn(user_input))
                except KeyboardInterrupt:
                    service.abort()
                    typer.echo("\n[stream interrupted]")
                except OllamaError as e:
                    typer.echo(f"error: {e}", err=True)
        finally:
            runner.run(service.aclose())


@app.command()
def embed(ctx: typer.Context, model: str, text: List[str]):
    data = _run(ctx, lambda s: s.embed({"model": model, "input": list(text)}))
    vectors = data.get("embeddings") or []
    dims = len(vectors[0]) if vectors else 0
    typer.echo(f"{len(vectors)} embedding(s) of dimension {dims}")


@app.command()
def search(ctx: typer.Context, query: str, max_results: Optional[int] = typer.Option(None, "--max-results")):
    """Hosted web search (needs OLLAMA_API_KEY)."""
    data = _run(ctx, lambda s: s.web_search(query, max_results=max_results))
    for i, r in enumerate(data.get("results") or [], 1):
        console.print(f"[bold]{i}. {r.get('title', '')}[/bold]  {r.get('url', '')}")
        console.print((r.get("content") or "")[:200])


@app.command()
def fetch(ctx: typer.Context, url: str):
    """Hosted web fetch (needs OLLAMA_API_KEY)."""
    data = _run(ctx, lambda s: s.web_fetch(url))
    console.print(f"[bold]{data.get('title', '')}[/bold]")
    typer.echo(data.get("content", ""))
