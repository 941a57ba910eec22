"""
Demonstration of curating a playbook with delta batches.

Applies two curator batches to a store backed by a temporary file, then
prints the rendered prompt and the aggregate stats.
"""

import tempfile
from pathlib import Path

from ace_playbook import PlaybookStore, configure_logging
from ace_playbook.errors import BulletNotFoundError


def main():
    configure_logging("INFO")

    print("=" * 70)
    print("ACE Playbook Delta Demonstration")
    print("=" * 70)
    print()

    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "playbook.json"
        store = PlaybookStore(path=path, autosave=True)

        store.apply_json({
            "reasoning": "First run surfaced two retry strategies",
            "operations": [
                {"type": "add", "section": "Retry Logic", "content": "Use exponential backoff"},
                {"type": "add", "section": "Retry Logic", "content": "Cap attempts at five"},
                {"type": "add", "section": "Parsing", "content": "Validate JSON before use",
                 "metadata": {"helpful": 1}},
            ],
        })

        try:
            store.apply_json({
                "reasoning": "Backoff helped, the cap did not matter",
                "operations": [
                    {"type": "tag", "bullet_id": "retry-00001", "metadata": {"helpful": 2}},
                    {"type": "remove", "bullet_id": "retry-00002"},
                    {"type": "tag", "bullet_id": "retry-99999", "metadata": {"harmful": 1}},
                ],
            })
        except BulletNotFoundError as exc:
            print(f"[WARN] Batch stopped early: {exc}")
        print()

        print(store.as_prompt())
        print()
        print(f"Stats: {store.stats()}")
        print(f"Saved to: {path} ({path.stat().st_size} bytes)")


if __name__ == "__main__":
    main()
