"""
In-process stand-in for the parts of supabase-py the backend uses.

Tables are plain lists of dict rows. The query builder supports the
PostgREST calls made by the repository, the admin services and the seed
script: select / insert / update / delete with eq, in_, is_, order, limit.
"""

import itertools
from types import SimpleNamespace


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.mode = "select"
        self.columns = None
        self.payload = None
        self.filters = []
        self.order_by = None
        self.row_limit = None

    def select(self, columns="*"):
        self.mode = "select"
        if columns.strip() != "*":
            self.columns = [c.strip() for c in columns.split(",")]
        return self

    def insert(self, payload):
        self.mode = "insert"
        self.payload = payload
        return self

    def update(self, payload):
        self.mode = "update"
        self.payload = payload
        return self

    def delete(self):
        self.mode = "delete"
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def is_(self, column, value):
        assert value == "null"
        self.filters.append(lambda row: row.get(column) is None)
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, count):
        self.row_limit = count
        return self

    def _matches(self, row):
        return all(f(row) for f in self.filters)

    def execute(self):
        self.db.calls.append((self.table, self.mode))
        if self.table in self.db.failing_tables:
            raise RuntimeError(f"relation \"{self.table}\" is unavailable")
        if (self.table, self.mode) in self.db.failing_operations:
            raise RuntimeError(f"{self.mode} on \"{self.table}\" failed")
        rows = self.db.tables.setdefault(self.table, [])

        if self.mode == "insert":
            payload = self.payload if isinstance(self.payload, list) else [self.payload]
            inserted = []
            for item in payload:
                row = dict(item)
                row.setdefault("id", self.db.next_id(self.table))
                rows.append(row)
                inserted.append(dict(row))
            return FakeResponse(inserted)

        matched = [row for row in rows if self._matches(row)]
        if self.mode == "update":
            for row in matched:
                row.update(self.payload)
            return FakeResponse([dict(row) for row in matched])
        if self.mode == "delete":
            self.db.tables[self.table] = [row for row in rows if not self._matches(row)]
            return FakeResponse([dict(row) for row in matched])

        if self.order_by:
            column, desc = self.order_by
            matched = sorted(matched, key=lambda row: str(row.get(column)), reverse=desc)
        if self.row_limit is not None:
            matched = matched[:self.row_limit]
        if self.columns:
            matched = [{c: row.get(c) for c in self.columns} for row in matched]
        return FakeResponse([dict(row) for row in matched])


class FakeAuth:
    """Token-based fake of supabase.auth"""

    def __init__(self):
        self.users_by_token = {}
        self.passwords = {}
        self.get_user_calls = 0
        self.sign_out_calls = 0

    def add_user(self, token, user_id, email, first_name=None, last_name=None, password="secret-password"):
        metadata = {}
        if first_name:
            metadata["first_name"] = first_name
        if last_name:
            metadata["last_name"] = last_name
        user = SimpleNamespace(id=user_id, email=email, user_metadata=metadata)
        self.users_by_token[token] = user
        self.passwords[email] = (password, token)
        return user

    def get_user(self, jwt=None):
        self.get_user_calls += 1
        user = self.users_by_token.get(jwt)
        if user is None:
            raise RuntimeError("invalid JWT: unable to parse or verify signature")
        return SimpleNamespace(user=user)

    def sign_up(self, credentials):
        email = credentials["email"]
        if email in self.passwords:
            raise RuntimeError("User already registered")
        metadata = credentials.get("options", {}).get("data", {})
        user_id = f"user-{len(self.passwords) + 1}"
        token = f"token-{user_id}"
        self.add_user(token, user_id, email, metadata.get("first_name"), metadata.get("last_name"),
                      password=credentials["password"])
        return SimpleNamespace(user=self.users_by_token[token], session=None)

    def sign_in_with_password(self, credentials):
        stored = self.passwords.get(credentials["email"])
        if stored is None or stored[0] != credentials["password"]:
            raise RuntimeError("Invalid login credentials")
        token = stored[1]
        return SimpleNamespace(
            user=self.users_by_token[token],
            session=SimpleNamespace(access_token=token)
        )

    def sign_out(self):
        self.sign_out_calls += 1


class FakeSupabase:
    def __init__(self):
        self.tables = {}
        self.failing_tables = set()
        self.failing_operations = set()
        self.calls = []
        self.auth = FakeAuth()
        self._ids = itertools.count(1)

    def next_id(self, table):
        return f"{table}-{next(self._ids)}"

    def table(self, name):
        return FakeQuery(self, name)

    def rows(self, name):
        return self.tables.setdefault(name, [])

    def find(self, table_name, **fields):
        return [row for row in self.rows(table_name) if all(row.get(k) == v for k, v in fields.items())]

    def role_id(self, name, site_id=None):
        return self.find("roles", name=name, site_id=site_id)[0]["id"]

    def permission_id(self, action, resource):
        return self.find("permissions", action=action, resource=resource)[0]["id"]

    def assign(self, user_id, role_id, site_id=None, campus_id=None):
        return self.table("user_roles").insert({
            "user_id": user_id,
            "role_id": role_id,
            "site_id": site_id,
            "campus_id": campus_id
        }).execute().data[0]
