"""Demo account provisioning. Idempotent; run through ``training-admin provision-users``."""
from app.api.deps import get_password_hash
from app.models.user import User, UserRole

DEMO_USERS = [
    {
        "email": "trainer@ndma.gov.in",
        "password": "trainer123",
        "name": "NDMA Trainer",
        "role": UserRole.TRAINER,
    },
    {
        "email": "authority@ndma.gov.in",
        "password": "authority123",
        "name": "NDMA Authority",
        "role": UserRole.AUTHORITY,
    },
    {
        "email": "trainee@ndma.gov.in",
        "password": "trainee123",
        "name": "Demo Trainee",
        "role": UserRole.TRAINEE,
        "age_bracket": "18-25",
        "district": "New Delhi",
        "state": "Delhi",
    },
]


async def provision_users(users: list[dict] = DEMO_USERS) -> list[tuple[str, bool]]:
    """Create missing accounts; existing emails are left untouched. Returns (email, created)."""
    results = []
    for data in users:
        email = data["email"].strip().lower()
        existing = await User.find_one(User.email == email)
        if existing:
            results.append((email, False))
            continue
        await User(
            email=email,
            hashed_password=get_password_hash(data["password"]),
            name=data["name"],
            role=data["role"],
            phone=data.get("phone"),
            age_bracket=data.get("age_bracket"),
            district=data.get("district"),
            state=data.get("state"),
        ).insert()
        results.append((email, True))
    return results
