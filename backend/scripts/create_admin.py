"""CLI script to bootstrap an administrator account.

Usage: python scripts/create_admin.py --email admin@example.com [--name NAME] [--password PASSWORD]

Registers the account when the email is unknown (a password is then
required), and grants the admin role either way.
"""
import sys
import argparse
import pathlib
from typing import Optional
# Ensure `backend/` is on sys.path so `skillhub` imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from skillhub import errors, services
from skillhub.database import create_db_and_tables, engine
from skillhub.repositories import UserRepository
from skillhub.store import DocumentStore


def main(email: str, name: Optional[str] = None, password: Optional[str] = None, session: Optional[Session] = None) -> dict:
    """Create or promote the user identified by `email` and return it.

    `session` lets callers (tests) supply their own database session;
    by default the configured engine is used.
    """
    own_session = session is None
    if own_session:
        create_db_and_tables()
        session = Session(engine)
    try:
        store = DocumentStore(session)
        user = UserRepository(store).get_by_email(email)
        if user is None:
            if not password:
                raise errors.ValidationError('password is required to create a new admin')
            created = services.AuthService(store).register(
                {'name': name or email.split('@')[0], 'email': email, 'password': password}
            )
            user_id = created['user']['id']
        else:
            user_id = user.id
        return services.UserService(store).set_role(user_id, 'admin')
    finally:
        if own_session:
            session.close()


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Create or promote a SkillHub admin')
    parser.add_argument('--email', required=True)
    parser.add_argument('--name', default=None)
    parser.add_argument('--password', default=None)
    args = parser.parse_args()
    try:
        admin = main(args.email, name=args.name, password=args.password)
    except errors.ServiceError as e:
        print(f'Failed: {e.message}')
        sys.exit(1)
    print(f"Admin ready: {admin['email']} ({admin['id']})")
