"""
Interactive console for the HealthWatch portal.
Sign in with a session token, then browse and register disease records with RBAC enforcement.
"""

import json

from healthwatch.api.auth import identity_from_claims, verify_token
from healthwatch.database import init_engine, RecordStore
from healthwatch.errors import PortalError
from healthwatch.identity import init_identity_provider
from healthwatch.rbac import build_policy, resolve_role
from healthwatch.records import RecordService

HELP = """Commands:
  role                 show the role from your session claim
  verify               re-check your role with the identity provider
  mine                 list your own disease records
  registered           list all registered disease records
  summary <village>    village disease summary
  register <id>        register one of your draft records
  quit                 exit"""


def _print_records(records):
    if not records:
        print("(no records)")
        return
    for r in records:
        supplies = ", ".join(f"{s.name} x{s.quantity}" for s in r.medical_supplies) or "-"
        print(f"  #{r.id} [{r.status}] {r.disease_name} @ {r.location or '-'} "
              f"(by {r.created_by}, {r.updated_at or r.created_at}) supplies: {supplies}")


def run_command(service, identity, line: str) -> bool:
    """Execute one console command. Returns False when the session should end."""
    cmd, _, arg = line.partition(" ")
    cmd = cmd.lower()
    arg = arg.strip()

    if cmd in {"quit", "exit"}:
        print("Goodbye.")
        return False
    if cmd == "help":
        print(HELP)
    elif cmd == "role":
        print(json.dumps(service.check_role(identity), indent=2))
    elif cmd == "verify":
        print(json.dumps(service.verifier.verify(identity).to_dict(), indent=2))
    elif cmd == "mine":
        _print_records(service.list_own_draft_records(identity))
    elif cmd == "registered":
        _print_records(service.list_registered_records(identity))
    elif cmd == "summary":
        print(json.dumps(service.get_village_summary(arg, identity), indent=2))
    elif cmd == "register":
        if not arg.isdigit():
            print("Usage: register <id>")
        else:
            record = service.register_record(int(arg), identity)
            print(f"Record #{record.id} is now {record.status}.")
    else:
        print(f"Unknown command '{cmd}'. Type 'help' for a list of commands.")
    return True


def main():
    print("=== HealthWatch Portal: Disease Records Console (RBAC) ===\n")

    engine = init_engine()
    provider = init_identity_provider(engine)
    service = RecordService(RecordStore(engine), provider)

    # ── Login ────────────────────────────────────────────────────────
    try:
        token = input("Enter session token (or 'quit'): ").strip()
    except (EOFError, KeyboardInterrupt):
        print("\nExiting.")
        return

    if not token or token.lower() in {"quit", "exit"}:
        print("Goodbye.")
        return

    claims = verify_token(token)
    if not claims:
        print("\n[ERROR] Login failed.")
        print("Details: invalid or expired token")
        return

    identity = identity_from_claims(claims)
    policy = build_policy(resolve_role(identity))
    print(f"\n[auth] Logged in as: {identity.email or identity.subject} (role={policy.role})")
    print(f"[auth] Policy: {policy.notes}")
    print(HELP)

    # ── REPL ─────────────────────────────────────────────────────────
    while True:
        try:
            line = input("\n> ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nExiting.")
            break

        if not line:
            continue

        try:
            if not run_command(service, identity, line):
                break
        except PortalError as e:
            print(f"\n[{e.reason}] {e.message}")


if __name__ == "__main__":
    main()
