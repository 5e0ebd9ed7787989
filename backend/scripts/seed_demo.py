"""Seed a demo localization project with a main branch and a feature branch.

Usage (from repository root):
    python backend/scripts/seed_demo.py

Usage (from backend directory):
    python scripts/seed_demo.py
    # or
    python -m scripts.seed_demo
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from sqlalchemy import delete, select

# Make `lokal` imports work whether the script is run from repo root or backend/.
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from lokal.db.session import SessionLocal
from lokal.models import GlossaryEntry, Project, ProjectLanguage, ProjectMember, Space, User
from lokal.services.branches import create_branch, create_key, list_branch_keys, set_translation_value
from lokal.services.diff import compute_branch_diff

DEFAULT_PROJECT_SLUG = "lokal-demo"

DEMO_KEYS: dict[str, dict[str, str]] = {
    "greeting.hello": {"en": "Hello {name}!", "de": "Hallo {name}!"},
    "cart.items": {
        "en": "{count, plural, =0 {No items} one {# item} other {# items}}",
        "de": "{count, plural, =0 {Keine Artikel} one {# Artikel} other {# Artikel}}",
    },
    "settings.save": {"en": "Save settings", "de": "Einstellungen speichern"},
    "checkout.total": {"en": "Total: %s", "de": "Summe: %s"},
}


def reset_project(db, slug: str) -> None:
    """Remove the demo project and everything that cascades from it."""

    db.execute(delete(Project).where(Project.slug == slug))
    db.commit()


def _get_or_create_user(db, email: str, name: str) -> User:
    user = db.scalar(select(User).where(User.email == email))
    if user is None:
        user = User(email=email, name=name)
        db.add(user)
        db.flush()
    return user


def parse_args() -> argparse.Namespace:
    """Parse script CLI arguments."""

    parser = argparse.ArgumentParser(description="Seed a demo localization project.")
    parser.add_argument(
        "--slug",
        default=DEFAULT_PROJECT_SLUG,
        help=f"Project slug to seed (default: {DEFAULT_PROJECT_SLUG})",
    )
    parser.add_argument(
        "--no-reset",
        action="store_true",
        help="Do not delete an existing project with the same slug before seeding.",
    )
    return parser.parse_args()


def main() -> None:
    """Seed demo data and print a short summary."""

    args = parse_args()
    slug: str = args.slug

    with SessionLocal() as db:
        if not args.no_reset:
            reset_project(db, slug)

        owner = _get_or_create_user(db, "owner@lokal.test", "Demo Owner")
        developer = _get_or_create_user(db, "dev@lokal.test", "Demo Developer")
        project = Project(name="Lokal Demo", slug=slug, default_language="en")
        project.languages = [
            ProjectLanguage(code="en", name="English", is_default=True),
            ProjectLanguage(code="de", name="German", is_default=False),
        ]
        project.members = [
            ProjectMember(user_id=owner.id, role="OWNER"),
            ProjectMember(user_id=developer.id, role="DEVELOPER"),
        ]
        db.add(project)
        db.flush()
        db.add(GlossaryEntry(project_id=project.id, source_term="settings", target_language="de", target_term="Einstellungen"))
        space = Space(project_id=project.id, name="Web", slug="web")
        db.add(space)
        db.commit()

        main_branch = create_branch(db, space_id=space.id, name="main", actor_id=owner.id)
        for key_name, values in DEMO_KEYS.items():
            create_key(db, branch_id=main_branch.id, translations=values, name=key_name)

        feature = create_branch(
            db,
            space_id=space.id,
            name="feature/checkout",
            actor_id=developer.id,
            source_branch_id=main_branch.id,
        )
        create_key(
            db,
            branch_id=feature.id,
            name="checkout.confirm",
            translations={"en": "Confirm order", "de": "Bestellung bestätigen"},
        )
        feature_keys = {key.name: key for key in list_branch_keys(db, feature.id)}
        german = next(t for t in feature_keys["settings.save"].translations if t.language == "de")
        set_translation_value(db, translation_id=german.id, value="Einstellungen sichern", actor_id=developer.id)

        diff = compute_branch_diff(db, feature.id, main_branch.id)
        project_id = project.id
        main_id = main_branch.id
        feature_id = feature.id
        owner_id = owner.id
        developer_id = developer.id

    print("Seed complete")
    print(f"project_id={project_id} owner_id={owner_id} developer_id={developer_id}")
    print(f"main_branch_id={main_id} feature_branch_id={feature_id}")
    print(
        f"pending_changes added={len(diff.changes.added)} modified={len(diff.changes.modified)} "
        f"conflicts={len(diff.changes.conflicts)}"
    )
    print()
    print("Inspect (send X-User-Id):")
    print(f"  POST /branches/{feature_id}/diff {{\"target_branch_id\": {main_id}}}")
    print(f"  POST /branches/{feature_id}/merge {{\"target_branch_id\": {main_id}}}")
    print(f"  GET /branches/{main_id}/quality-summary")
    print(f"  GET /projects/{project_id}/activity")


if __name__ == "__main__":
    main()
