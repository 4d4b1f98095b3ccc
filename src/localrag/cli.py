"""
Command-line entry point for localrag.

Usage:
    localrag init-runtime
    localrag ingest report.pdf --kb kb-1
    localrag embed-note note-1 --file meeting.md
    localrag search "refund policy" --kb kb-1 --note note-1 --limit 5
    localrag drop --kb kb-1
"""

import argparse
import json
import logging
import sys
import uuid
from pathlib import Path

from .config.settings import load_settings
from .core.exceptions import RagError
from .core.logging import configure_logging
from .core.types import CollectionKind, CollectionRef
from .pipeline.progress import ProgressEvent
from .retrieval.context import format_context
from .services import RagServices, build_services


logger = logging.getLogger(__name__)


def print_progress(event: ProgressEvent) -> None:
    print(f"[{event.percent:3d}%] {event.stage.value}: {event.message}", file=sys.stderr)


def cmd_init_runtime(services: RagServices, args) -> int:
    state = services.provisioner.initialize(
        on_progress=lambda p: print(f"runtime: {p.status}", file=sys.stderr)
    )
    print(json.dumps({"source": state.source.value, "base_url": state.base_url}))
    return 0


def cmd_ingest(services: RagServices, args) -> int:
    services.provisioner.initialize()
    path = Path(args.file)
    result = services.ingestion.ingest(
        path.read_bytes(),
        path.name,
        kb_id=args.kb,
        file_id=args.file_id or str(uuid.uuid4()),
        on_progress=print_progress,
    )
    print(json.dumps({
        "file_id": result.file_id,
        "storage_path": result.storage_path,
        "chunk_count": result.chunk_count,
        "file_size": result.file_size,
    }))
    return 0


def cmd_embed_note(services: RagServices, args) -> int:
    services.provisioner.initialize()
    content = Path(args.file).read_text(encoding="utf-8")
    result = services.notes.embed_note(args.note_id, content=content, on_progress=print_progress)
    print(json.dumps({
        "note_id": result.note_id,
        "chunk_count": result.chunk_count,
        "text_length": result.text_length,
    }))
    return 0


def cmd_search(services: RagServices, args) -> int:
    services.provisioner.initialize()
    collections = [CollectionRef(kb, CollectionKind.KNOWLEDGE_BASE) for kb in args.kb or []]
    collections += [CollectionRef(note, CollectionKind.NOTE) for note in args.note or []]
    if not collections:
        logger.error("Nothing to search: pass --kb and/or --note")
        return 2

    snippets = services.assembler.retrieve(args.query, collections, limit=args.limit)
    if args.format == "json":
        print(json.dumps([
            {
                "owner_id": s.owner_id,
                "kind": s.kind.label,
                "file_id": s.file_id,
                "source_name": s.source_name,
                "similarity": round(s.similarity, 4),
                "content": s.content,
            }
            for s in snippets
        ], indent=2))
    else:
        print(format_context(snippets))
    return 0


def cmd_drop(services: RagServices, args) -> int:
    if args.kb:
        dropped = services.vector_store.drop_collection(args.kb, CollectionKind.KNOWLEDGE_BASE)
    else:
        dropped = services.vector_store.drop_collection(args.note, CollectionKind.NOTE)
    print(json.dumps({"dropped": dropped}))
    return 0


def cmd_pull_model(services: RagServices, args) -> int:
    services.provisioner.initialize()
    result = services.models.pull_model(args.model)
    print(json.dumps({"success": result.success, "status": result.status, "error": result.error}))
    return 0 if result.success else 1


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="localrag",
        description="Offline document-to-answer pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", type=Path, help="Path to configuration YAML file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")

    subparsers = parser.add_subparsers(dest="command", required=True)

    init = subparsers.add_parser("init-runtime", help="Detect or start the inference runtime")
    init.set_defaults(handler=cmd_init_runtime)

    ingest = subparsers.add_parser("ingest", help="Ingest a document into a knowledge base")
    ingest.add_argument("file", help="Document to ingest")
    ingest.add_argument("--kb", required=True, help="Knowledge base id")
    ingest.add_argument("--file-id", help="File id (random UUID by default)")
    ingest.set_defaults(handler=cmd_ingest)

    note = subparsers.add_parser("embed-note", help="Embed (or re-embed) a note")
    note.add_argument("note_id", help="Note id")
    note.add_argument("--file", required=True, help="File holding the note text")
    note.set_defaults(handler=cmd_embed_note)

    search = subparsers.add_parser("search", help="Retrieve context for a query")
    search.add_argument("query", help="Query text")
    search.add_argument("--kb", action="append", help="Knowledge base id (repeatable)")
    search.add_argument("--note", action="append", help="Note id (repeatable)")
    search.add_argument("--limit", type=int, default=None, help="Maximum snippets")
    search.add_argument("--format", choices=["text", "json"], default="text")
    search.set_defaults(handler=cmd_search)

    drop = subparsers.add_parser("drop", help="Drop a vector collection")
    target = drop.add_mutually_exclusive_group(required=True)
    target.add_argument("--kb", help="Knowledge base id")
    target.add_argument("--note", help="Note id")
    drop.set_defaults(handler=cmd_drop)

    pull = subparsers.add_parser("pull-model", help="Download a model through the runtime")
    pull.add_argument("model", help="Model name, e.g. llama3:8b")
    pull.set_defaults(handler=cmd_pull_model)

    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    configure_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        structured=args.json_logs,
    )

    try:
        settings = load_settings(args.config)
        services = build_services(settings)
    except RagError as e:
        logger.error(f"Configuration error: {e}")
        return 2

    try:
        return args.handler(services, args)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 1
    except RagError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    finally:
        # A runtime started by this command stays up for the next one
        services.close(stop_runtime=False)


if __name__ == "__main__":
    sys.exit(main())
