#!/usr/bin/env python3
"""
Seed-Skript: Erstellt Benutzer und Direktnachrichten ueber die REST-API.

Verwendung:
    python seed_demo.py --count 5
    python seed_demo.py --count 10 --messages 30 --base-url http://localhost:8000
    python seed_demo.py --count 3 --prefix testuser --password geheim123
"""
import argparse
import itertools
import random

import httpx

SAMPLE_MESSAGES = [
    "Hallo! Wie geht es dir?",
    "Hast du die Praesentation fuer morgen fertig?",
    "Meeting um 14:00 Uhr?",
    "Ich habe den Bug gefunden und behoben.",
    "Mittagspause? Ich komme mit.",
    "Danke fuer die Hilfe beim Debugging!",
    "Kurze Frage: Wo liegt die Doku?",
    "Bin heute im Homeoffice erreichbar.",
]


def create_users(client: httpx.Client, count: int, prefix: str, password: str) -> list[str]:
    created = []
    for i in range(1, count + 1):
        username = f"{prefix}{i:04d}"
        resp = client.post(
            "/api/users/register",
            json={"username": username, "password": password},
        )
        if resp.status_code == 200:
            print(f"  [{i}/{count}] Benutzer erstellt: {username}")
        elif resp.status_code == 400 and "taken" in resp.json().get("error", ""):
            print(f"  [{i}/{count}] Bereits vorhanden: {username} (uebersprungen)")
        else:
            print(f"  [{i}/{count}] FEHLER bei {username}: {resp.status_code} - {resp.text}")
            continue
        created.append(username)
    return created


def seed_conversations(client: httpx.Client, usernames: list[str], per_pair: int) -> int:
    sent = 0
    for a, b in itertools.combinations(usernames, 2):
        for _ in range(per_pair):
            sender, receiver = random.choice([(a, b), (b, a)])
            resp = client.post(
                "/api/messages",
                json={
                    "sender": sender,
                    "receiver": receiver,
                    "content": random.choice(SAMPLE_MESSAGES),
                },
            )
            if resp.status_code == 200:
                sent += 1
            else:
                print(f"  FEHLER Nachricht {sender} -> {receiver}: {resp.status_code} - {resp.text}")
    return sent


def main():
    parser = argparse.ArgumentParser(
        description="Erstellt Testbenutzer und Direktnachrichten in RelayChat"
    )
    parser.add_argument(
        "--count", "-n",
        type=int,
        default=5,
        help="Anzahl der zu erstellenden Benutzer (Standard: 5)",
    )
    parser.add_argument(
        "--messages", "-m",
        type=int,
        default=10,
        help="Nachrichten pro Benutzerpaar (Standard: 10)",
    )
    parser.add_argument(
        "--base-url", "-u",
        type=str,
        default="http://localhost:8000",
        help="Backend-URL (Standard: http://localhost:8000)",
    )
    parser.add_argument(
        "--prefix", "-p",
        type=str,
        default="user",
        help="Praefix fuer Benutzernamen (Standard: user)",
    )
    parser.add_argument(
        "--password",
        type=str,
        default="Test1234!",
        help="Passwort fuer alle Benutzer (Standard: Test1234!)",
    )
    args = parser.parse_args()

    print(f"Erstelle {args.count} Benutzer auf {args.base_url} ...")
    with httpx.Client(base_url=args.base_url, timeout=30.0) as client:
        users = create_users(client, args.count, args.prefix, args.password)
        print()
        sent = seed_conversations(client, users, args.messages)

    print()
    print(f"Fertig: {len(users)} Benutzer, {sent} Nachrichten.")


if __name__ == "__main__":
    main()
