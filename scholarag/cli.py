#!/usr/bin/env python3
"""Scholarag CLI - ask questions about academic documents from the command line.

Usage:
    scholarag ingest <file> [--document-id ID]
    scholarag search <document_id> <query> [--top-k N]
    scholarag ask <document_id> <question> [--user USER] [--feature FEATURE]
    scholarag keys add|list|activate|delete ...
    scholarag prefs set|show ...
    scholarag providers
    scholarag --version

Commands:
    ingest      Chunk, embed and store a text document
    search      Show the chunks most relevant to a query
    ask         Answer a question about a document with page citations
    keys        Manage your encrypted provider API keys
    prefs       Choose a provider and model per feature
    providers   List available providers and models

Examples:
    # Ingest text extracted with pdftotext (pages separated by form feeds)
    pdftotext paper.pdf paper.txt
    scholarag ingest paper.txt --document-id smith2024

    # Ask a question
    scholarag ask smith2024 "What sample size did the study use?"

    # Use your own Claude key for chat
    scholarag keys add claude sk-ant-...
    scholarag prefs set chat claude --custom-key
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from .config import Config
from .core.models import Feature, FeaturePreference
from .exceptions import ScholaragError
from .utils.logging import setup_logging


def get_version():
    """Get package version."""
    from . import __version__
    return __version__


def load_config(args) -> Config:
    """Load configuration for CLI use.

    Unless set explicitly, the CLI persists chunks in ChromaDB and records
    in SQLite so separate invocations see the same data.
    """
    config = Config.from_env(getattr(args, "env_file", None))
    if not os.getenv("SCHOLARAG_CHUNK_STORE"):
        config.chunk_store_backend = "chroma"
    if not os.getenv("SCHOLARAG_RECORD_STORE"):
        config.record_store_backend = "sqlite"
    return config


def build_assistant(args):
    from .assistant import DocumentAssistant
    return DocumentAssistant.from_config(load_config(args))


def read_pages(path: Path):
    """Read a text file into (page_number, text) pairs split on form feeds."""
    text = path.read_text(encoding="utf-8")
    return [(i, page) for i, page in enumerate(text.split("\f"), 1)]


def cmd_ingest(args):
    """Chunk, embed and store a text document."""
    input_path = Path(args.file)
    if not input_path.exists():
        print(f"Error: File not found: {input_path}")
        return 1

    document_id = args.document_id or input_path.stem
    pages = read_pages(input_path)

    assistant = build_assistant(args)
    print(f"Ingesting {input_path.name} as '{document_id}' ({len(pages)} pages)...")
    result = assistant.ingest(document_id, pages, file_id=args.file_id)

    print(f"  Chunks created: {result.chunks_created}")
    print(f"  Generation: {result.generation}")
    print(f"  Embedded: {result.embedded_chunks}")
    if result.failed_embeddings:
        print(f"  Without embedding: {result.failed_embeddings}")
    return 0


def cmd_search(args):
    """Show the chunks most relevant to a query."""
    assistant = build_assistant(args)
    result = assistant.search(args.document_id, args.query, top_k=args.top_k)

    if args.json:
        print(json.dumps([c.to_dict() for c in result.chunks], indent=2))
        return 0

    if result.clamped:
        print(f"Note: top-k reduced from {result.top_k_requested} to {result.top_k_applied}")
    if not result.semantic_available:
        print("Note: query embedding unavailable, ranked by keywords only")

    for rank, scored in enumerate(result.chunks, 1):
        page = scored.page_number if scored.page_number is not None else "?"
        print(f"\n[{rank}] page {page}  score {scored.combined_score:.3f} "
              f"(semantic {scored.semantic_score:.3f}, lexical {scored.lexical_score:.3f})")
        print(f"    {scored.chunk.get_preview(200)}")
    return 0


def cmd_ask(args):
    """Answer a question about a document."""
    assistant = build_assistant(args)
    result = assistant.ask(
        args.user,
        args.document_id,
        args.question,
        feature=args.feature,
        top_k=args.top_k,
    )

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
        return 0

    print(result.answer)
    if result.citations:
        print("\nSources:")
        for citation in result.citations:
            print(f"  [Page {citation.page_number}] {citation.excerpt}")

    via = f"{result.provider_used}/{result.model_used}"
    if result.fell_back:
        via += " (fallback)"
    print(f"\nAnswered by {via}")
    return 0


def cmd_keys(args):
    """Manage encrypted provider API keys."""
    assistant = build_assistant(args)
    credentials = assistant.require_credentials()

    if args.keys_command == "add":
        record = credentials.save_credential(
            args.user, args.provider, args.secret, activate=not args.inactive
        )
        print(f"Saved {record.provider_name} key {record.masked_secret} ({record.credential_id})")
        return 0

    if args.keys_command == "activate":
        record = credentials.activate(args.user, args.credential_id)
        print(f"Activated {record.provider_name} key {record.masked_secret}")
        return 0

    if args.keys_command == "delete":
        if credentials.delete_credential(args.user, args.credential_id):
            print(f"Deleted {args.credential_id}")
            return 0
        print(f"Error: No key {args.credential_id} for user {args.user}")
        return 1

    records = credentials.list_credentials(args.user)
    if not records:
        print("No keys stored.")
        return 0
    for record in records:
        status = "active" if record.is_active else "inactive"
        print(f"  {record.credential_id}  {record.provider_name:<12} {record.masked_secret:<16} {status}")
    return 0


def cmd_prefs(args):
    """Show or change model preferences."""
    assistant = build_assistant(args)

    if args.prefs_command == "set":
        preference = assistant.preferences.save_preference(FeaturePreference(
            user_id=args.user,
            feature=args.feature,
            preferred_provider=args.provider,
            preferred_model=args.model,
            use_custom_credential=args.custom_key,
            fallback_enabled=not args.no_fallback,
        ))
        print(f"{preference.feature}: {preference.preferred_provider}"
              f"/{preference.preferred_model or 'default'}")
        return 0

    preferences = assistant.preferences.list_preferences(args.user)
    if not preferences:
        default = assistant.registry.system_default
        print(f"No preferences set; using {default.name}/{default.default_model}")
        return 0
    for preference in preferences:
        flags = []
        if preference.use_custom_credential:
            flags.append("own key")
        if not preference.fallback_enabled:
            flags.append("no fallback")
        suffix = f" ({', '.join(flags)})" if flags else ""
        print(f"  {preference.feature:<18} {preference.preferred_provider}"
              f"/{preference.preferred_model or 'default'}{suffix}")
    return 0


def cmd_providers(args):
    """List available providers and models."""
    from .providers.registry import build_default_registry

    registry = build_default_registry(load_config(args))
    for descriptor in registry.descriptors():
        marker = " [system default]" if descriptor.is_system_default else ""
        print(f"{descriptor.name:<12} {descriptor.display_name}{marker}")
        for model in descriptor.supported_models:
            default = " (default)" if model == descriptor.default_model else ""
            print(f"    {model}{default}")
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="scholarag",
        description="Scholarag - question answering over academic documents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  scholarag ingest paper.txt --document-id smith2024
  scholarag search smith2024 "climate change adaptation"
  scholarag ask smith2024 "What are the main findings?"
  scholarag prefs set chat claude --model claude-3-5-haiku-20241022
        """
    )
    parser.add_argument("--version", action="version", version=f"scholarag {get_version()}")
    parser.add_argument("--env-file", help="Path to .env file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # ingest command
    ingest_parser = subparsers.add_parser(
        "ingest",
        help="Chunk, embed and store a text document",
        description="Ingest a text file. Form feeds separate pages."
    )
    ingest_parser.add_argument("file", help="Input text file")
    ingest_parser.add_argument("--document-id", help="Document ID (default: file name)")
    ingest_parser.add_argument("--file-id", help="Source file ID to record with each chunk")

    # search command
    search_parser = subparsers.add_parser(
        "search",
        help="Show the chunks most relevant to a query",
    )
    search_parser.add_argument("document_id", help="Document ID")
    search_parser.add_argument("query", help="Search query")
    search_parser.add_argument("--top-k", type=int, help="Number of chunks (default: 5)")
    search_parser.add_argument("--json", action="store_true", help="Print JSON")

    # ask command
    ask_parser = subparsers.add_parser(
        "ask",
        help="Answer a question about a document",
    )
    ask_parser.add_argument("document_id", help="Document ID")
    ask_parser.add_argument("question", help="Question to ask")
    ask_parser.add_argument("--user", default="local", help="User ID (default: local)")
    ask_parser.add_argument("--feature", default=Feature.CHAT.value,
                            choices=[f.value for f in Feature],
                            help="Feature whose model preference applies (default: chat)")
    ask_parser.add_argument("--top-k", type=int, help="Number of context chunks (default: 5)")
    ask_parser.add_argument("--json", action="store_true", help="Print JSON")

    # keys command
    keys_parser = subparsers.add_parser("keys", help="Manage your provider API keys")
    keys_parser.add_argument("--user", default="local", help="User ID (default: local)")
    keys_sub = keys_parser.add_subparsers(dest="keys_command")
    keys_sub.required = True

    keys_add = keys_sub.add_parser("add", help="Store an API key")
    keys_add.add_argument("provider", help="Provider name")
    keys_add.add_argument("secret", help="API key")
    keys_add.add_argument("--inactive", action="store_true", help="Store without activating")

    keys_sub.add_parser("list", help="List stored keys (masked)")

    keys_activate = keys_sub.add_parser("activate", help="Make a stored key active")
    keys_activate.add_argument("credential_id", help="Credential ID")

    keys_delete = keys_sub.add_parser("delete", help="Delete a stored key")
    keys_delete.add_argument("credential_id", help="Credential ID")

    # prefs command
    prefs_parser = subparsers.add_parser("prefs", help="Choose a provider per feature")
    prefs_parser.add_argument("--user", default="local", help="User ID (default: local)")
    prefs_sub = prefs_parser.add_subparsers(dest="prefs_command")
    prefs_sub.required = True

    prefs_set = prefs_sub.add_parser("set", help="Set the provider for a feature")
    prefs_set.add_argument("feature", choices=[f.value for f in Feature], help="Feature name")
    prefs_set.add_argument("provider", help="Provider name")
    prefs_set.add_argument("--model", help="Model name (default: provider default)")
    prefs_set.add_argument("--custom-key", action="store_true",
                           help="Use your stored key for this provider")
    prefs_set.add_argument("--no-fallback", action="store_true",
                           help="Fail instead of falling back to the system default")

    prefs_sub.add_parser("show", help="Show your preferences")

    # providers command
    subparsers.add_parser("providers", help="List available providers and models")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    setup_logging(level=logging.DEBUG if args.verbose else logging.WARNING)

    # Dispatch to command handler
    commands = {
        "ingest": cmd_ingest,
        "search": cmd_search,
        "ask": cmd_ask,
        "keys": cmd_keys,
        "prefs": cmd_prefs,
        "providers": cmd_providers,
    }

    try:
        return commands[args.command](args)
    except ScholaragError as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
