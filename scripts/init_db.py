import os
import sys
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.rhub.constants import PERMISSIONS, ROLE_NAMES, ROLE_PERMISSIONS
from app.rhub.models import Permission, Role, SubscriptionPlan, User


@contextmanager
def _seed_session(database_url: str):
    engine = create_engine(database_url, future=True, pool_pre_ping=True)
    sm = sessionmaker(bind=engine, class_=Session, autoflush=False, expire_on_commit=False, future=True)
    s: Session = sm()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
        engine.dispose()


DEFAULT_PLAN = {
    "name": "Free Trial",
    "description": "Try ResilienceHub with a small caseload before choosing a plan.",
    "price": 0,
    "interval": "month",
    "features": ["Up to 3 clients", "Journal and goal tracking", "Resource library"],
    "max_clients": 3,
}


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed permissions/roles/admin user/default plan in an idempotent way.
    Does NOT overwrite an existing admin user's password.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@resiliencehub.app").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///rhub.db").strip()

    # Direct engine/session so release can run this without importing app.wsgi.
    with _seed_session(db_url) as s:
        def ensure_perm(key: str, name: str) -> Permission:
            p = s.query(Permission).filter(Permission.key == key).one_or_none()
            if not p:
                p = Permission(key=key, name=name)
                s.add(p)
            return p

        perms = {key: ensure_perm(key, name) for key, name in PERMISSIONS.items()}

        roles: dict[str, Role] = {}
        for role_key, perm_keys in ROLE_PERMISSIONS.items():
            role = s.query(Role).filter(Role.key == role_key).one_or_none()
            if not role:
                role = Role(key=role_key, name=ROLE_NAMES[role_key])
                s.add(role)
            for key in perm_keys:
                if perms[key] not in role.permissions:
                    role.permissions.append(perms[key])
            roles[role_key] = role

        user = s.query(User).filter(User.email == admin_email).one_or_none()
        if not user:
            user = User(
                username="admin",
                email=admin_email,
                name="Administrator",
                password_hash=generate_password_hash(admin_password),
                is_active=True,
            )
            s.add(user)
        if roles["admin"] not in user.roles:
            user.roles.append(roles["admin"])

        # New therapists land on the default plan; seed one when none exists.
        if not s.query(SubscriptionPlan).filter(SubscriptionPlan.is_default.is_(True)).first():
            plan = s.query(SubscriptionPlan).filter(SubscriptionPlan.name == DEFAULT_PLAN["name"]).one_or_none()
            if not plan:
                plan = SubscriptionPlan(**DEFAULT_PLAN, is_active=True)
                s.add(plan)
            plan.is_active = True
            plan.is_default = True

    print("Initialized database (seed_only).")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
