from werkzeug.security import generate_password_hash

from models import db, User

ROLE_MAP = {"1": "citizen", "2": "municipality-worker", "3": "super-admin"}


def create_user(email, password, name, role, team_id=None):
    """Insert a user; returns (user, created). An existing email is left alone."""
    email = email.strip().lower()
    existing = User.query.filter_by(email=email).first()
    if existing:
        return existing, False

    user = User(
        email=email,
        password=generate_password_hash(password, method='pbkdf2:sha256'),
        name=name,
        role=role,
        team_id=team_id if role == "municipality-worker" else None,
    )
    db.session.add(user)
    db.session.commit()
    return user, True


def main():
    from app import create_app

    app = create_app()
    with app.app_context():
        email = input("Enter email: ")
        password = input("Enter password: ")
        name = input("Enter name: ")

        # role select
        print("Select role:")
        print("1. citizen")
        print("2. municipality-worker")
        print("3. super-admin")
        choice = input("Enter role number (1/2/3): ")
        role = ROLE_MAP.get(choice, "citizen")

        team_id = None
        if role == "municipality-worker":
            raw = input("Team id (blank for none): ").strip()
            team_id = int(raw) if raw else None

        user, created = create_user(email, password, name, role, team_id)
        if not created:
            print(f"Email '{user.email}' already exists with role={user.role}")
        else:
            print(f"{role} account created successfully: {user.email}")


if __name__ == "__main__":
    main()
