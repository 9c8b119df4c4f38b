#!/usr/bin/env python3
"""
Index Rebuild Utility
Rebuilds the semantic index from the note files on disk and optionally runs a query against it.
Tombstoned vectors are dropped; internal ids restart at zero.
"""

import argparse
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.core.config import NOTES_DIR, SEARCH_TOP_K, validate_index_config
from src.vector import Note, get_semantic_index


def load_notes(notes_dir: Path):
    """Read every ``*.json`` note file in ``notes_dir``, skipping unreadable ones."""
    notes = []
    for path in sorted(notes_dir.glob("*.json")):
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            notes.append(Note(id=str(data["id"]), title=data.get("title", ""), content=data.get("content", "")))
        except (OSError, ValueError, KeyError, TypeError) as e:
            print(f"WARNING: Skipping {path.name}: {e}")
    return notes


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Rebuild the semantic note index")
    parser.add_argument("--notes-dir", default=NOTES_DIR, help="Directory of note JSON files")
    parser.add_argument("--query", help="Run a semantic query after rebuilding")
    parser.add_argument("--top-k", type=int, default=SEARCH_TOP_K, help="Neighbours to request")
    parser.add_argument("--cutoff", type=float, default=None, help="Maximum cosine distance")
    return parser.parse_args(argv)


def main(argv=None):
    """Rebuild semantic index from note files."""
    args = parse_args(argv)

    issues = validate_index_config()
    if issues:
        for issue in issues:
            print(f"ERROR: {issue}")
        sys.exit(1)

    notes_dir = Path(args.notes_dir).expanduser()
    if not notes_dir.is_dir():
        print(f"ERROR: Notes directory not found: {notes_dir}")
        sys.exit(1)

    notes = load_notes(notes_dir)
    print(f"Found {len(notes)} notes in {notes_dir}")

    manager = get_semantic_index()
    indexed = manager.rebuild(notes)
    print(f"✓ Rebuilt index with {indexed} vectors")

    if args.query:
        ids = manager.search(args.query, args.top_k, args.cutoff)
        print(f"Query '{args.query}' returned {len(ids)} results")
        for note_id in ids:
            print(f"  {note_id}")

    print("Index rebuild complete!")


if __name__ == "__main__":
    main()
