#!/usr/bin/env python3
"""
Seed the local database with demo users, village reports and disease records.
Everything goes through RecordService so the same role checks apply as in the API.
"""

import random

from faker import Faker

from healthwatch.database import init_engine, RecordStore
from healthwatch.identity import DatabaseIdentityProvider
from healthwatch.models import Identity
from healthwatch.records import RecordService

# --------------------------------------------------------------------
# CONFIG
# --------------------------------------------------------------------
NUM_ASHA_WORKERS = 4
NUM_CITIZENS = 6
REPORTS_PER_WORKER = (2, 6)     # min, max
RECORDS_PER_WORKER = (1, 4)
REGISTER_PROBABILITY = 0.5

VILLAGES = ["Rampur", "Sitapur", "Chandpur", "Devgarh", "Kalyanpur"]
DISEASES = {
    "Dengue": ["fever", "rash", "joint pain", "headache"],
    "Malaria": ["fever", "chills", "sweating", "nausea"],
    "Typhoid": ["fever", "abdominal pain", "weakness"],
    "Cholera": ["diarrhoea", "dehydration", "vomiting"],
    "Influenza": ["fever", "cough", "sore throat", "body ache"],
}
SUPPLIES = ["ORS packets", "Paracetamol", "Chloroquine", "Bed nets", "Zinc tablets"]

# --------------------------------------------------------------------
# SETUP
# --------------------------------------------------------------------
fake = Faker("en_IN")
random.seed(42)
Faker.seed(42)


# --------------------------------------------------------------------
# SEED FUNCTIONS
# --------------------------------------------------------------------
def seed_users(provider):
    workers = []
    for i in range(NUM_ASHA_WORKERS):
        user_id = f"user_asha_{i + 1}"
        provider.set_user_role(user_id, "asha")
        workers.append(Identity(subject=user_id, attributes={"role": "asha"}, email=fake.email()))
    for i in range(NUM_CITIZENS):
        provider.set_user_role(f"user_citizen_{i + 1}", "citizen")
    provider.set_user_role("user_admin_1", "admin")
    return workers


def seed_reports(service, workers):
    count = 0
    for worker in workers:
        for _ in range(random.randint(*REPORTS_PER_WORKER)):
            disease = random.choice(list(DISEASES))
            service.create_report({
                "disease": disease,
                "description": fake.sentence(nb_words=12),
                "symptoms": random.sample(DISEASES[disease], k=2),
                "village": random.choice(VILLAGES),
                "location": fake.street_name(),
                "date": fake.date_between(start_date="-90d").isoformat(),
                "itemName": random.choice(SUPPLIES),
                "itemQuantity": random.randint(1, 50),
            }, worker)
            count += 1
    return count


def seed_records(service, workers):
    count = 0
    for worker in workers:
        for _ in range(random.randint(*RECORDS_PER_WORKER)):
            record = service.create_draft_record({
                "diseaseName": random.choice(list(DISEASES)),
                "description": fake.paragraph(nb_sentences=2),
                "location": random.choice(VILLAGES),
                "medicalSupplies": [
                    {"name": name, "quantity": random.randint(1, 20)}
                    for name in random.sample(SUPPLIES, k=random.randint(1, 3))
                ],
            }, worker)
            if random.random() < REGISTER_PROBABILITY:
                service.register_record(record.id, worker)
            count += 1
    return count


# --------------------------------------------------------------------
# MAIN
# --------------------------------------------------------------------
def main():
    engine = init_engine()
    provider = DatabaseIdentityProvider(engine)
    service = RecordService(RecordStore(engine), provider)

    print("Seeding users...")
    workers = seed_users(provider)

    print("Seeding village reports...")
    n_reports = seed_reports(service, workers)

    print("Seeding disease records...")
    n_records = seed_records(service, workers)

    print(f"Done! {n_reports} reports, {n_records} records.")


if __name__ == "__main__":
    main()
