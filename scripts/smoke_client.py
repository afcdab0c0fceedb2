"""
Smoke client for the xelochat API.
Exercises the REST endpoints of a running server.
"""

import asyncio
import sys

import httpx


BASE_URL = "http://localhost:5000"


async def check_health(client: httpx.AsyncClient):
    """Test health endpoints."""
    print("\n🏥 Health")

    for path in ("/health", "/health/ready"):
        response = await client.get(f"{BASE_URL}{path}")
        print(f"   {path}: {response.status_code} {response.json()}")


async def check_catalog(client: httpx.AsyncClient):
    """Show the consultant and available models."""
    print("\n👤 Consultant and models")

    profile = (await client.get(f"{BASE_URL}/api/consultant/profile")).json()
    print(f"   {profile['name']} - {profile['title']}")

    models = (await client.get(f"{BASE_URL}/api/models")).json()
    for model in models["models"]:
        status = "✅" if model["available"] else "⛔"
        print(f"   {status} {model['id']}: {model['name']}")


async def check_knowledge_search(client: httpx.AsyncClient):
    """Rank knowledge entries for a few queries."""
    print("\n📚 Knowledge search")

    for query in ("cloud migration", "What services do you offer?", "pricing"):
        response = await client.get(
            f"{BASE_URL}/api/knowledge/search",
            params={"q": query, "limit": 3}
        )
        ids = [entry["id"] for entry in response.json()["results"]]
        print(f"   '{query}' -> {ids}")


async def check_conversation(client: httpx.AsyncClient, model_id: str):
    """Hold a short multi-turn chat in one session."""
    print(f"\n💬 Conversation ({model_id})")

    messages = [
        "Hello! Who am I talking to?",
        "We need to migrate our legacy systems to the cloud.",
        "How long would a project like that take?",
    ]

    session_id = None

    for text in messages:
        payload = {"message": text, "model_id": model_id}
        if session_id:
            payload["session_id"] = session_id

        print(f"\n   📤 User: {text}")
        response = await client.post(f"{BASE_URL}/api/chat", json=payload)

        if response.status_code != 200:
            print(f"   ❌ Error: {response.status_code} {response.text}")
            continue

        data = response.json()
        session_id = data["session_id"]
        print(f"   🤖 Consultant: {data['message'][:120]}")
        print(f"   📚 Knowledge: {data['knowledge_ids']}")
        print(f"   🔊 Audio: {data['audio_url'] or data['tts_hint']}")
        print(f"   ⏱️  Latency: {data['latency_ms']}ms")

    if session_id:
        history = (await client.get(f"{BASE_URL}/api/sessions/{session_id}")).json()
        print(f"\n   Session {session_id} has {history['turn_count']} turns")


async def main():
    model_id = sys.argv[1] if len(sys.argv) > 1 else "mock"

    print("=" * 60)
    print("🧪 xelochat smoke client")
    print("=" * 60)
    print(f"Target: {BASE_URL}")

    try:
        async with httpx.AsyncClient(timeout=60.0) as client:
            await check_health(client)
            await check_catalog(client)
            await check_knowledge_search(client)
            await check_conversation(client, model_id)

        print("\n" + "=" * 60)
        print("✅ Done")
        print("=" * 60)

    except httpx.ConnectError:
        print("\n❌ Cannot connect to server. Make sure it's running:")
        print("   uvicorn xelochat.main:app --port 5000")


if __name__ == "__main__":
    asyncio.run(main())
