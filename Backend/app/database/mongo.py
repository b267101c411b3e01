from motor.motor_asyncio import AsyncIOMotorClient
import os
from dotenv import load_dotenv

load_dotenv()

uri = os.getenv("MONGODB_URI")
db_name = os.getenv("MONGODB_NAME", "TallerDB")

if not uri:
    raise RuntimeError("MONGODB_URI no está definida en .env")

client = AsyncIOMotorClient(uri)
db = client[db_name]
collection_sales = db["sales"]
collection_services = db["services"]
collection_cash_transactions = db["cash_drawer_transactions"]
collection_initial_balances = db["initial_cash_balances"]
collection_cash_closures = db["cash_closures"]
collection_fixed_expenses = db["fixed_expenses"]
collection_personnel = db["personnel"]
collection_inventory = db["inventory"]
