"""Users, companies and per-route access grants."""

import uuid
from dataclasses import dataclass

from .connection import get_connection


@dataclass
class User:
    id: str | None
    email: str
    full_name: str | None = None
    is_super_admin: bool = False


@dataclass
class Company:
    id: str | None
    name: str


@dataclass
class Membership:
    company: Company
    role: str


class SessionRepository:
    """Repository for the session side of the dashboard."""

    def create_user(self, user: User) -> User:
        user.id = user.id or str(uuid.uuid4())
        conn = get_connection()
        conn.execute(
            "INSERT INTO users (id, email, full_name, is_super_admin) VALUES (?, ?, ?, ?)",
            (user.id, user.email.lower(), user.full_name, int(user.is_super_admin)),
        )
        conn.commit()
        conn.close()
        return user

    def get_user_by_email(self, email: str) -> User | None:
        conn = get_connection()
        cursor = conn.cursor()
        cursor.execute("SELECT * FROM users WHERE email = ?", (email.strip().lower(),))
        row = cursor.fetchone()
        conn.close()
        if not row:
            return None
        return User(
            id=row["id"],
            email=row["email"],
            full_name=row["full_name"],
            is_super_admin=bool(row["is_super_admin"]),
        )

    def create_company(self, company: Company) -> Company:
        company.id = company.id or str(uuid.uuid4())
        conn = get_connection()
        conn.execute("INSERT INTO companies (id, name) VALUES (?, ?)", (company.id, company.name))
        conn.commit()
        conn.close()
        return company

    def add_member(self, user_id: str, company_id: str, role: str = "billing_staff") -> None:
        conn = get_connection()
        conn.execute(
            "INSERT OR REPLACE INTO company_users (user_id, company_id, role) VALUES (?, ?, ?)",
            (user_id, company_id, role),
        )
        conn.commit()
        conn.close()

    def get_companies_for_user(self, user_id: str) -> list[Membership]:
        """Companies the user belongs to, with their role in each."""
        conn = get_connection()
        cursor = conn.cursor()
        cursor.execute("""
            SELECT c.id, c.name, cu.role FROM company_users cu
            JOIN companies c ON c.id = cu.company_id
            WHERE cu.user_id = ?
            ORDER BY c.name
        """, (user_id,))
        rows = cursor.fetchall()
        conn.close()
        return [Membership(Company(id=row["id"], name=row["name"]), row["role"]) for row in rows]

    # Route access

    def register_route(self, route_path: str, name: str) -> None:
        """Mark a route as restricted to users holding a grant."""
        conn = get_connection()
        conn.execute(
            "INSERT OR REPLACE INTO form_reports (route_path, name) VALUES (?, ?)",
            (route_path, name),
        )
        conn.commit()
        conn.close()

    def grant_route(self, user_id: str, company_id: str, route_path: str) -> None:
        conn = get_connection()
        conn.execute(
            "INSERT OR IGNORE INTO form_report_access (user_id, company_id, route_path) VALUES (?, ?, ?)",
            (user_id, company_id, route_path),
        )
        conn.commit()
        conn.close()

    def get_route_access(self, user_id: str, company_id: str | None) -> tuple[set[str], set[str]]:
        """Return (registered routes, routes granted to this user in this company)."""
        conn = get_connection()
        cursor = conn.cursor()
        cursor.execute("SELECT route_path FROM form_reports")
        registered = {row["route_path"] for row in cursor.fetchall()}
        cursor.execute(
            "SELECT route_path FROM form_report_access WHERE user_id = ? AND company_id = ?",
            (user_id, company_id),
        )
        granted = {row["route_path"] for row in cursor.fetchall()}
        conn.close()
        return registered, granted
