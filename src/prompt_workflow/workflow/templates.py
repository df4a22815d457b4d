"""Built-in workflow templates."""

from typing import Any, Dict, List

from .model import Workflow

# Records use the serialized (camelCase) layout so they read like saved files.
DEFAULT_TEMPLATE_RECORDS: List[Dict[str, Any]] = [
    {
        "id": "template-fullstack",
        "name": "Full-Stack Web Application",
        "description": "Complete workflow for building a full-stack application from planning to deployment",
        "type": "fullstack",
        "estimatedTime": "2-4 hours",
        "steps": [
            {
                "id": "step-planning",
                "title": "Project Planning & Architecture",
                "description": "Analyze requirements and design system architecture",
                "category": "planning",
                "variables": {"projectName": "", "requirements": ""},
            },
            {
                "id": "step-database",
                "title": "Database Schema Design",
                "description": "Create database tables, relationships, and migrations",
                "category": "backend",
                "dependencies": ["step-planning"],
                "variables": {"dbType": "postgresql", "entities": ""},
            },
            {
                "id": "step-api",
                "title": "API Endpoints Setup",
                "description": "Build REST API endpoints and authentication",
                "category": "backend",
                "dependencies": ["step-database"],
                "variables": {"authType": "jwt", "endpoints": ""},
            },
            {
                "id": "step-frontend",
                "title": "Frontend Component Structure",
                "description": "Create React components and routing structure",
                "category": "frontend",
                "dependencies": ["step-planning"],
                "variables": {"framework": "react", "styling": "tailwind"},
            },
            {
                "id": "step-integration",
                "title": "API Integration",
                "description": "Connect frontend to backend APIs with proper error handling",
                "category": "integration",
                "dependencies": ["step-api", "step-frontend"],
                "variables": {"httpClient": "fetch", "errorHandling": "try-catch"},
            },
            {
                "id": "step-testing",
                "title": "Testing & Validation",
                "description": "Add unit tests, integration tests, and validation",
                "category": "testing",
                "dependencies": ["step-integration"],
                "variables": {"testFramework": "jest", "coverage": "80%"},
            },
            {
                "id": "step-deployment",
                "title": "Deployment & DevOps",
                "description": "Set up CI/CD pipeline and deploy to production",
                "category": "deployment",
                "dependencies": ["step-testing"],
                "variables": {"platform": "vercel", "cicd": "github-actions"},
            },
        ],
    },
    {
        "id": "template-react-component",
        "name": "React Component Development",
        "description": "Systematic approach to building reusable React components",
        "type": "frontend",
        "estimatedTime": "1-2 hours",
        "steps": [
            {
                "id": "comp-design",
                "title": "Component Design & Props",
                "description": "Define component interface and prop types",
                "category": "planning",
            },
            {
                "id": "comp-implementation",
                "title": "Component Implementation",
                "description": "Build the React component with proper TypeScript types",
                "category": "frontend",
                "dependencies": ["comp-design"],
            },
            {
                "id": "comp-styling",
                "title": "Styling & Responsiveness",
                "description": "Add Tailwind CSS styling and responsive design",
                "category": "frontend",
                "dependencies": ["comp-implementation"],
            },
            {
                "id": "comp-testing",
                "title": "Component Testing",
                "description": "Write unit tests and integration tests",
                "category": "testing",
                "dependencies": ["comp-styling"],
            },
        ],
    },
    {
        "id": "template-rest-api",
        "name": "REST API Development",
        "description": "Design, implement and document a REST API",
        "type": "api",
        "estimatedTime": "1-3 hours",
        "steps": [
            {
                "id": "api-design",
                "title": "Resource & Endpoint Design",
                "description": "Model resources and define routes, payloads and status codes",
                "category": "planning",
                "variables": {"style": "rest", "versioning": "url"},
            },
            {
                "id": "api-implementation",
                "title": "Endpoint Implementation",
                "description": "Implement handlers, validation and persistence",
                "category": "backend",
                "dependencies": ["api-design"],
            },
            {
                "id": "api-testing",
                "title": "API Tests",
                "description": "Cover endpoints with request-level tests",
                "category": "testing",
                "dependencies": ["api-implementation"],
            },
            {
                "id": "api-docs",
                "title": "API Documentation",
                "description": "Publish an OpenAPI description and usage examples",
                "category": "custom",
                "dependencies": ["api-implementation"],
            },
        ],
    },
    {
        "id": "template-test-gated-deploy",
        "name": "Test-Gated Deployment",
        "description": "Run tests, then deploy on success or loop back through a fix step on failure",
        "type": "custom",
        "estimatedTime": "30-60 minutes",
        "steps": [
            {
                "id": "gate-tests",
                "title": "Run Test Suite",
                "description": "Execute the full test suite against the release candidate",
                "category": "testing",
                "variables": {"environment": "staging"},
            },
            {
                "id": "gate-check",
                "title": "Check Test Outcome",
                "description": "Route to deployment or to a fix depending on the test result",
                "category": "conditional",
                "dependencies": ["gate-tests"],
                "isConditional": True,
                "conditionalBranches": [
                    {
                        "id": "branch-tests-passed",
                        "name": "Tests passed",
                        "condition": {
                            "id": "rule-tests-passed",
                            "type": "step_result",
                            "operator": "equals",
                            "value": "success",
                            "targetStepId": "gate-tests",
                        },
                        "nextStepId": "gate-deploy",
                    },
                ],
                "defaultNextStepId": "gate-fix",
            },
            {
                "id": "gate-fix",
                "title": "Fix Failing Tests",
                "description": "Address the failures reported by the test run, then re-run the suite",
                "category": "custom",
                "variables": {"skipRetest": "false"},
                "isConditional": True,
                "conditionalBranches": [
                    {
                        "id": "branch-skip-retest",
                        "name": "Deploy without re-running tests",
                        "condition": {
                            "id": "rule-skip-retest",
                            "type": "variable",
                            "operator": "equals",
                            "value": "true",
                            "targetVariable": "skipRetest",
                        },
                        "nextStepId": "gate-deploy",
                    },
                ],
                "defaultNextStepId": "gate-tests",
            },
            {
                "id": "gate-deploy",
                "title": "Deploy to Production",
                "description": "Promote the release candidate",
                "category": "deployment",
                "dependencies": ["gate-check"],
                "variables": {"environment": "production"},
            },
        ],
    },
]


def default_templates() -> List[Workflow]:
    """Return fresh template workflows with ``order`` numbered by position."""
    templates = []
    for record in DEFAULT_TEMPLATE_RECORDS:
        workflow = Workflow.model_validate({**record, "isTemplate": True})
        for position, step in enumerate(workflow.steps, start=1):
            step.order = position
        templates.append(workflow)
    return templates
