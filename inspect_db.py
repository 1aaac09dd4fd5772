import sqlite3
from washop.db.session import DATABASE_URL

db_path = DATABASE_URL.replace("sqlite+aiosqlite:///", "", 1)

conn = sqlite3.connect(db_path)
cursor = conn.cursor()

print("Кошельки продавцов:")
cursor.execute(
    "SELECT s.name, w.balance, w.total_earned, w.total_withdrawn "
    "FROM seller_wallets w JOIN shops s ON s.id = w.shop_id;"
)
for name, balance, earned, withdrawn in cursor.fetchall():
    print(f"  {name}: balance={balance} earned={earned} withdrawn={withdrawn}")

print("\nПлатежи:")
cursor.execute(
    "SELECT provider, provider_reference, amount, platform_fee, seller_amount, status, credited_to_seller "
    "FROM payments ORDER BY created_at;"
)
for provider, reference, amount, fee, seller, status, credited in cursor.fetchall():
    mark = "✅" if credited else "⏳"
    print(f"  {mark} [{provider}] {reference}: {amount} (fee {fee}, seller {seller}) {status}")

conn.close()
