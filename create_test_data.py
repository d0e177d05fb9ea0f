#!/usr/bin/env python3

import asyncio
import sys
import traceback

from chatapp.database import create_tables, AsyncSessionLocal
from chatapp.repositories.user_repository import UserRepository
from chatapp.repositories.message_repository import MessageRepository
from chatapp.schemas.user import UserCreate

PASSWORD = "password123"

async def create_test_users():
    async with AsyncSessionLocal() as db:
        user_repo = UserRepository(db)

        users_data = [
            {"full_name": "Alice Martin", "email": "alice@example.com", "bio": "Hi, I'm using chat"},
            {"full_name": "Bob Stone", "email": "bob@example.com", "bio": "Busy"},
            {"full_name": "Charlie Day", "email": "charlie@example.com"},
            {"full_name": "Diana Cole", "email": "diana@example.com"},
        ]

        created_users = []
        for user_data in users_data:
            existing_user = await user_repo.get_by_email(user_data["email"])
            if not existing_user:
                user = await user_repo.create(UserCreate(password=PASSWORD, **user_data))
                created_users.append(user)
                print(f"Created user: {user.email} (ID: {user.id})")
            else:
                created_users.append(existing_user)
                print(f"User {user_data['email']} exists (ID: {existing_user.id})")

        return created_users

async def create_test_messages(users):
    alice, bob, charlie, diana = users

    async with AsyncSessionLocal() as db:
        message_repo = MessageRepository(db)

        conversation = [
            (alice, bob, "Hey Bob! How's it going?"),
            (bob, alice, "Hi Alice! All good, thanks!"),
            (alice, bob, "Great! Ready to work on the project?"),
            (charlie, alice, "Alice, got a minute?"),
            (charlie, alice, "It's about tomorrow's demo"),
            (diana, charlie, "Can we discuss project details?"),
            (charlie, diana, "Sure! I have a few ideas"),
        ]

        created_messages = []
        for sender, receiver, text in conversation:
            message = await message_repo.create(sender.id, receiver.id, text=text)
            created_messages.append(message)
            print(f"Created message {sender.full_name} -> {receiver.full_name}: '{text[:30]}'")

        return created_messages

async def main():
    print("Creating test data for Chat App...\n")

    try:
        print("1. Creating database tables...")
        await create_tables()
        print("Tables created\n")

        print("2. Creating test users...")
        users = await create_test_users()
        print(f"Created/found {len(users)} users\n")

        print("3. Creating test messages...")
        messages = await create_test_messages(users)
        print(f"Created {len(messages)} messages\n")

        print("Test data summary:")
        for user in users:
            print(f"  - {user.email} (ID: {user.id}) - password: {PASSWORD}")

        print("\nUseful links:")
        print("  - API docs: http://localhost:8000/docs")
        print("  - WebSocket: ws://localhost:8000/api/ws/chat?token=<token>")

    except Exception as e:
        print(f"Error creating test data: {e}")
        traceback.print_exc()
        sys.exit(1)

if __name__ == "__main__":
    asyncio.run(main())
