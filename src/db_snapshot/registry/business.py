"""Entity registry of the business application dataset.

CRM (accounts, contacts, opportunities, interactions), product roadmap
(products, features, roadmap items, ideas, business model canvases),
project and resource management (projects, milestones, tasks, allocations,
timesheets) and finance (expenses, budget lines, expense categories).

Snapshot keys, table names and column names follow the application's
store: camelCase fields on PascalCase tables, and ``A``/``B`` columns on
implicit join tables.

Any table added to the store must be declared here too; run
``db-snapshot connect`` to list tables this registry does not cover.
"""

from db_snapshot.registry.models import EntityDef, EntityRegistry, ForeignKey, ManyToMany

_TIMESTAMPS = {"createdAt": "datetime", "updatedAt": "datetime"}


def _types(**extra: str) -> dict:
    return {**_TIMESTAMPS, **extra}


BUSINESS_REGISTRY = EntityRegistry(
    entities=[
        EntityDef(name="users", table="User", root=True, field_types=_types()),
        EntityDef(
            name="accounts",
            table="Account",
            foreign_keys=[ForeignKey(entity="users", field="ownerId", nullable=True)],
            field_types=_types(),
        ),
        EntityDef(name="products", table="Product", field_types=_types()),
        EntityDef(
            name="resourceProfiles",
            table="ResourceProfile",
            foreign_keys=[ForeignKey(entity="users", field="userId")],
            field_types=_types(costRate="decimal", billableRate="decimal"),
        ),
        EntityDef(
            name="contacts",
            table="Contact",
            foreign_keys=[ForeignKey(entity="accounts", field="accountId")],
            field_types=_types(),
        ),
        EntityDef(
            name="interactions",
            table="Interaction",
            foreign_keys=[
                ForeignKey(entity="accounts", field="accountId", nullable=True),
                ForeignKey(entity="opportunities", field="opportunityId", nullable=True),
                ForeignKey(entity="users", field="userId", nullable=True),
            ],
            field_types=_types(date="datetime"),
        ),
        EntityDef(
            name="features",
            table="Feature",
            foreign_keys=[ForeignKey(entity="products", field="productId")],
            many_to_many=[
                ManyToMany(
                    peer="opportunities",
                    export_field="opportunities",
                    join_table="_FeatureToOpportunity",
                    column="A",
                    peer_column="B",
                )
            ],
            field_types=_types(
                riceImpact="decimal", riceEffort="decimal", riceScore="decimal"
            ),
        ),
        EntityDef(
            name="roadmapItems",
            table="RoadmapItem",
            foreign_keys=[ForeignKey(entity="products", field="productId")],
            field_types=_types(startDate="datetime", endDate="datetime"),
        ),
        EntityDef(
            name="opportunities",
            table="Opportunity",
            foreign_keys=[
                ForeignKey(entity="accounts", field="accountId"),
                ForeignKey(entity="users", field="ownerId", nullable=True),
            ],
            many_to_many=[
                ManyToMany(
                    peer="features",
                    export_field="features",
                    join_table="_FeatureToOpportunity",
                    column="B",
                    peer_column="A",
                )
            ],
            field_types=_types(estimatedValue="decimal", expectedCloseDate="datetime"),
        ),
        EntityDef(
            name="projects",
            table="Project",
            foreign_keys=[
                ForeignKey(entity="accounts", field="accountId", nullable=True),
                ForeignKey(entity="users", field="managerId", nullable=True),
                ForeignKey(entity="opportunities", field="opportunityId", nullable=True),
            ],
            field_types=_types(
                budget="decimal", startDate="datetime", endDate="datetime"
            ),
        ),
        EntityDef(
            name="milestones",
            table="Milestone",
            foreign_keys=[ForeignKey(entity="projects", field="projectId")],
            field_types=_types(amount="decimal", dueDate="datetime"),
        ),
        EntityDef(
            name="tasks",
            table="Task",
            foreign_keys=[
                ForeignKey(entity="projects", field="projectId", nullable=True),
                ForeignKey(entity="milestones", field="milestoneId", nullable=True),
                ForeignKey(entity="users", field="assigneeId", nullable=True),
                ForeignKey(entity="opportunities", field="opportunityId", nullable=True),
            ],
            self_reference="parentId",
            field_types=_types(startDate="datetime", dueDate="datetime"),
        ),
        EntityDef(
            name="allocations",
            table="Allocation",
            foreign_keys=[
                ForeignKey(entity="resourceProfiles", field="resourceId"),
                ForeignKey(entity="projects", field="projectId", nullable=True),
                ForeignKey(entity="opportunities", field="opportunityId", nullable=True),
            ],
            field_types=_types(startDate="datetime", endDate="datetime"),
        ),
        EntityDef(
            name="ideas",
            table="Idea",
            foreign_keys=[
                ForeignKey(entity="users", field="creatorId"),
                ForeignKey(entity="features", field="featureId", nullable=True),
                ForeignKey(entity="products", field="productId", nullable=True),
            ],
            field_types=_types(),
        ),
        EntityDef(
            name="timesheetEntries",
            table="TimesheetEntry",
            foreign_keys=[
                ForeignKey(entity="users", field="userId"),
                ForeignKey(entity="tasks", field="taskId"),
            ],
            field_types=_types(
                date="datetime",
                hours="decimal",
                costRate="decimal",
                billableRate="decimal",
            ),
        ),
        EntityDef(name="expenseCategories", table="ExpenseCategory", field_types=_types()),
        EntityDef(
            name="businessModelCanvases",
            table="BusinessModelCanvas",
            foreign_keys=[ForeignKey(entity="products", field="productId")],
            field_types=_types(),
        ),
        EntityDef(
            name="expenses",
            table="Expense",
            foreign_keys=[ForeignKey(entity="projects", field="projectId")],
            field_types=_types(amount="decimal", date="datetime"),
        ),
        EntityDef(
            name="projectBudgetLines",
            table="ProjectBudgetLine",
            foreign_keys=[ForeignKey(entity="projects", field="projectId")],
            field_types=_types(amount="decimal"),
        ),
    ]
)
