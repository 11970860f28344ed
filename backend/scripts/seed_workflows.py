"""
Seed the default workflow templates for development.
Run: python -m scripts.seed_workflows  (from backend/)

Creates the tables if missing.  Templates that already exist by name
are left untouched.
"""

import asyncio

from docflow.db.session import create_session_factory, create_tables
from docflow.pipeline.templates import default_workflows
from docflow.repositories.workflows import find_workflow_by_name, upsert_workflow


async def seed():
    """Insert the workflow templates."""
    factory, engine = create_session_factory(echo=False)
    try:
        await create_tables(engine)
        created = 0
        async with factory() as session:
            for workflow in default_workflows():
                if await find_workflow_by_name(session, workflow.name) is not None:
                    print(f"  Exists:  {workflow.name}")
                    continue
                await upsert_workflow(session, workflow)
                created += 1
                print(f"  Created: {workflow.name} ({len(workflow.steps)} steps)")
            await session.commit()
        print(f"Seeded {created} workflows.")
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed())
