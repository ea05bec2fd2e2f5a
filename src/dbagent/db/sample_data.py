"""Sample ``users`` collection for trying the agent against a fresh database."""

import logging
from datetime import datetime
from typing import (
    Any,
    Dict,
    List,
)

from dbagent.db.mongo import MongoStore

logger = logging.getLogger(__name__)

SAMPLE_COLLECTION = "users"


def _user(
    uid: int,
    name: str,
    age: int,
    role: str,
    department: str,
    salary: int,
    skills: List[str],
    city: str,
    state: str,
    active: bool,
    joined: str,
    last_login: str,
    projects: List[str],
) -> Dict[str, Any]:
    return {
        "_id": f"user_{uid:03d}",
        "name": name,
        "email": f"{name.lower().replace(' ', '.')}@example.com",
        "age": age,
        "role": role,
        "department": department,
        "salary": salary,
        "skills": skills,
        "location": {"city": city, "state": state, "country": "USA"},
        "isActive": active,
        "joinDate": datetime.fromisoformat(joined),
        "lastLogin": datetime.fromisoformat(last_login),
        "projects": projects,
    }


SAMPLE_USERS: List[Dict[str, Any]] = [
    _user(1, "Alice Johnson", 28, "Software Engineer", "Engineering", 85000,
          ["JavaScript", "React", "Node.js", "MongoDB"], "San Francisco", "CA", True,
          "2022-03-15", "2024-02-04", ["AI Agent", "Web Dashboard", "Mobile App"]),
    _user(2, "Bob Smith", 34, "Product Manager", "Product", 95000,
          ["Project Management", "Agile", "Analytics", "Leadership"], "New York", "NY", True,
          "2021-08-20", "2024-02-05", ["Product Roadmap", "User Research", "Feature Planning"]),
    _user(3, "Carol Davis", 31, "Data Scientist", "Data", 92000,
          ["Python", "Machine Learning", "SQL", "TensorFlow", "Statistics"], "Austin", "TX", True,
          "2020-11-10", "2024-02-03", ["ML Pipeline", "Data Analytics", "Predictive Models"]),
    _user(4, "David Wilson", 26, "Frontend Developer", "Engineering", 75000,
          ["HTML", "CSS", "JavaScript", "Vue.js", "TypeScript"], "Seattle", "WA", False,
          "2023-01-05", "2023-12-15", ["UI Components", "Landing Pages"]),
    _user(5, "Emma Brown", 29, "DevOps Engineer", "Engineering", 88000,
          ["Docker", "Kubernetes", "AWS", "CI/CD", "Linux"], "Denver", "CO", True,
          "2021-06-18", "2024-02-05", ["Infrastructure", "Deployment Pipeline", "Monitoring"]),
    _user(6, "Frank Garcia", 37, "Senior Backend Developer", "Engineering", 105000,
          ["Java", "Spring", "PostgreSQL", "Redis", "Microservices"], "Chicago", "IL", True,
          "2019-04-22", "2024-02-04", ["Payment Service", "API Gateway"]),
    _user(7, "Grace Lee", 27, "UX Designer", "Design", 78000,
          ["Figma", "User Research", "Prototyping", "Accessibility"], "Portland", "OR", True,
          "2022-09-12", "2024-02-02", ["Design System", "Mobile App"]),
    _user(8, "Henry Miller", 42, "Engineering Manager", "Engineering", 130000,
          ["Leadership", "Architecture", "Hiring", "Go"], "Boston", "MA", True,
          "2018-02-01", "2024-02-05", ["Platform Strategy", "Team Growth"]),
    _user(9, "Isabel Rodriguez", 30, "QA Engineer", "Quality Assurance", 72000,
          ["Selenium", "Cypress", "Python", "Test Automation"], "Miami", "FL", False,
          "2022-05-30", "2023-11-20", ["Regression Suite", "Release Testing"]),
    _user(10, "Jack Thompson", 35, "Security Engineer", "Security", 110000,
          ["Penetration Testing", "OWASP", "Cloud Security", "Python"], "Atlanta", "GA", True,
          "2020-07-14", "2024-02-01", ["Security Audit", "Threat Modeling"]),
]


def seed_sample_data(store: MongoStore, replace: bool = False) -> int:
    """
    Insert :data:`SAMPLE_USERS` into the ``users`` collection.

    If the collection already holds documents, nothing is inserted unless *replace* is set, in
    which case the collection is emptied first.  Returns the number of inserted documents.
    """
    users = store.get_collection(SAMPLE_COLLECTION)
    existing = users.count_documents({})
    if existing and not replace:
        logger.warning(
            "Collection '%s' already has %d documents; pass replace=True to reseed",
            SAMPLE_COLLECTION,
            existing,
        )
        return 0
    if existing:
        users.delete_many({})
        logger.info("Removed %d existing documents from '%s'", existing, SAMPLE_COLLECTION)

    result = users.insert_many([dict(user) for user in SAMPLE_USERS])
    logger.info("Inserted %d sample users", len(result.inserted_ids))
    return len(result.inserted_ids)
