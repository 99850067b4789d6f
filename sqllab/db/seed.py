import asyncio
import os
import sys
from datetime import datetime, timedelta

import aiosqlite

from .session import DATA_DIR


async def seed(db_path: str):
    """Build (or rebuild) a demo session database at ``db_path``."""
    os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)
    async with aiosqlite.connect(db_path) as db:
        await db.executescript("""
CREATE TABLE IF NOT EXISTS users (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL,
  email TEXT UNIQUE,
  region TEXT,
  signup_date TEXT
);
CREATE TABLE IF NOT EXISTS products (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL,
  price REAL
);
CREATE TABLE IF NOT EXISTS orders (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  user_id INTEGER,
  product_id INTEGER,
  quantity INTEGER,
  order_date TEXT,
  FOREIGN KEY(user_id) REFERENCES users(id),
  FOREIGN KEY(product_id) REFERENCES products(id)
);
CREATE TABLE IF NOT EXISTS product_tags (
  product_id INTEGER NOT NULL,
  tag TEXT NOT NULL,
  PRIMARY KEY (product_id, tag)
);
""")
        # Clear existing sample rows for idempotence
        await db.execute("DELETE FROM users")
        await db.execute("DELETE FROM products")
        await db.execute("DELETE FROM orders")
        await db.execute("DELETE FROM product_tags")

        products = [("Widget", 9.99), ("Gadget", 19.99), ("Doodad", 4.99)]
        for p in products:
            await db.execute("INSERT INTO products (name, price) VALUES (?, ?)", p)

        tags = [(1, "hardware"), (1, "sale"), (2, "hardware"), (3, "misc")]
        await db.executemany("INSERT INTO product_tags (product_id, tag) VALUES (?, ?)", tags)

        # 200 users; every tenth one has no region so NULLs show up in results
        regions = ["NA", "EU", "APAC", "LATAM"]
        base_date = datetime(2025, 1, 1)
        users = []
        for i in range(1, 201):
            region = None if i % 10 == 0 else regions[i % len(regions)]
            signup_date = (base_date + timedelta(days=i)).strftime("%Y-%m-%d")
            users.append((f"User{i}", f"user{i}@example.com", region, signup_date))
        await db.executemany(
            "INSERT INTO users (name, email, region, signup_date) VALUES (?,?,?,?)", users
        )

        orders = []
        for i in range(1, 151):
            order_date = (base_date + timedelta(days=i)).strftime("%Y-%m-%d")
            orders.append(((i % 200) + 1, (i % 3) + 1, (i % 5) + 1, order_date))
        await db.executemany(
            "INSERT INTO orders (user_id, product_id, quantity, order_date) VALUES (?, ?, ?, ?)",
            orders,
        )

        await db.commit()
    return db_path


if __name__ == "__main__":
    session_id = sys.argv[1] if len(sys.argv) > 1 else "demo"
    path = asyncio.run(seed(os.path.join(DATA_DIR, f"{session_id}.db")))
    print(f"Seeded session '{session_id}' at {path}")
