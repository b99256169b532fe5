from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Optional

from provisioner.models.workflow import WorkflowTemplate, WorkflowVariable

LATEST_NODE_VERSION = "20.x"

# Body for ad-hoc scheduled jobs: schedule trigger plus manual dispatch, one job.
SCHEDULED_JOB_BODY = """name: ${{ variables.name }}

on:
  schedule:
    - cron: '${{ variables.schedule }}'
  workflow_dispatch:

jobs:
  cron:
    runs-on: ubuntu-latest
    steps:
      - uses: actions/checkout@v4
      - name: Run cron job
        run: ${{ variables.command }}
"""

NODEJS_CICD = WorkflowTemplate(
    id="nodejs-cicd",
    name="Node.js CI/CD",
    description="Build, test, and deploy Node.js applications",
    type="CI/CD",
    variables=(
        WorkflowVariable("nodeVersion", "string", "Node.js version to use", True, LATEST_NODE_VERSION),
        WorkflowVariable("buildCommand", "string", "Command to build the application", True, "npm run build"),
        WorkflowVariable("testCommand", "string", "Command to run tests", True, "npm test"),
        WorkflowVariable("deployCommand", "string", "Command to deploy the application", True, "npm run deploy"),
    ),
    body="""name: Node.js CI/CD

on:
  push:
    branches: [ main ]
  pull_request:
    branches: [ main ]

jobs:
  build-and-test:
    runs-on: ubuntu-latest
    strategy:
      matrix:
        node-version: [ '${{ variables.nodeVersion }}' ]

    steps:
    - uses: actions/checkout@v3

    - name: Use Node.js ${{ matrix.node-version }}
      uses: actions/setup-node@v3
      with:
        node-version: ${{ matrix.node-version }}
        cache: 'npm'

    - name: Install dependencies
      run: npm ci

    - name: Build
      run: ${{ variables.buildCommand }}

    - name: Test
      run: ${{ variables.testCommand }}

    - name: Deploy
      if: github.ref == 'refs/heads/main'
      run: ${{ variables.deployCommand }}
""",
)

JAVA_GRADLE = WorkflowTemplate(
    id="java-gradle",
    name="Java/Gradle CI/CD",
    description="Build, test, and deploy Java applications using Gradle",
    type="Java",
    variables=(
        WorkflowVariable("javaVersion", "string", "Java version to use", True, "17"),
        WorkflowVariable("gradleVersion", "string", "Gradle version to use", True, "8.5"),
        WorkflowVariable("runTests", "boolean", "Run tests before deployment", False, True),
        WorkflowVariable("publishArtifacts", "boolean", "Publish artifacts to repository", False, False),
    ),
    body="""name: Java/Gradle CI/CD

on:
  push:
    branches: [ main ]
  pull_request:
    branches: [ main ]

jobs:
  build:
    runs-on: ubuntu-latest
    steps:
    - uses: actions/checkout@v3
    - name: Set up JDK ${{ variables.javaVersion }}
      uses: actions/setup-java@v3
      with:
        java-version: '${{ variables.javaVersion }}'
        distribution: 'temurin'
        cache: gradle
    - name: Setup Gradle ${{ variables.gradleVersion }}
      uses: gradle/gradle-build-action@v2
      with:
        gradle-version: '${{ variables.gradleVersion }}'
    ${{ if variables.runTests }}
    - name: Run tests
      run: ./gradlew test
    ${{ endif }}
    - name: Build with Gradle
      run: ./gradlew build
    ${{ if variables.publishArtifacts }}
    - name: Publish artifacts
      run: ./gradlew publish
    ${{ endif }}
""",
)

GO = WorkflowTemplate(
    id="go",
    name="Go CI/CD",
    description="Build, test, and deploy Go applications",
    type="Go",
    variables=(
        WorkflowVariable("goVersion", "string", "Go version to use", True, "1.21"),
        WorkflowVariable("runTests", "boolean", "Run tests before deployment", False, True),
        WorkflowVariable("buildBinary", "boolean", "Build binary for deployment", False, True),
    ),
    body="""name: Go CI/CD

on:
  push:
    branches: [ main ]
  pull_request:
    branches: [ main ]

jobs:
  build:
    runs-on: ubuntu-latest
    steps:
    - uses: actions/checkout@v3
    - name: Set up Go ${{ variables.goVersion }}
      uses: actions/setup-go@v4
      with:
        go-version: '${{ variables.goVersion }}'
    ${{ if variables.runTests }}
    - name: Run tests
      run: go test -v ./...
    ${{ endif }}
    ${{ if variables.buildBinary }}
    - name: Build binary
      run: go build -o app
    ${{ endif }}
""",
)

POSTGRES = WorkflowTemplate(
    id="postgres",
    name="PostgreSQL CI/CD",
    description="Database migrations and tests for PostgreSQL",
    type="Database",
    variables=(
        WorkflowVariable("postgresVersion", "string", "PostgreSQL version to use", True, "15"),
        WorkflowVariable("runMigrations", "boolean", "Run database migrations", False, True),
        WorkflowVariable("runTests", "boolean", "Run database tests", False, True),
    ),
    body="""name: PostgreSQL CI/CD

on:
  push:
    branches: [ main ]
  pull_request:
    branches: [ main ]

jobs:
  database:
    runs-on: ubuntu-latest
    services:
      postgres:
        image: postgres:${{ variables.postgresVersion }}
        env:
          POSTGRES_USER: postgres
          POSTGRES_PASSWORD: postgres
          POSTGRES_DB: test_db
        ports:
          - 5432:5432
        options: >-
          --health-cmd pg_isready
          --health-interval 10s
          --health-timeout 5s
          --health-retries 5
    steps:
    - uses: actions/checkout@v3
    ${{ if variables.runMigrations }}
    - name: Run migrations
      run: |
        npm install -g db-migrate
        db-migrate up
    ${{ endif }}
    ${{ if variables.runTests }}
    - name: Run database tests
      run: npm run test:db
    ${{ endif }}
""",
)

MONOREPO = WorkflowTemplate(
    id="monorepo",
    name="Monorepo CI/CD",
    description="Build and test multiple packages in a monorepo",
    type="Monorepo",
    variables=(
        WorkflowVariable("packageManager", "string", "Package manager to use", True, "npm"),
        WorkflowVariable("useTurbo", "boolean", "Use Turborepo for builds", False, True),
        WorkflowVariable("runTests", "boolean", "Run tests for all packages", False, True),
    ),
    body="""name: Monorepo CI/CD

on:
  push:
    branches: [ main ]
  pull_request:
    branches: [ main ]

jobs:
  build:
    runs-on: ubuntu-latest
    steps:
    - uses: actions/checkout@v3
    ${{ if variables.useTurbo }}
    - name: Install Turbo
      run: ${{ variables.packageManager }} install -g turbo
    - name: Build with Turbo
      run: turbo run build
    ${{ if variables.runTests }}
    - name: Test with Turbo
      run: turbo run test
    ${{ endif }}
    ${{ else }}
    - name: Install dependencies
      run: ${{ variables.packageManager }} install
    - name: Build packages
      run: ${{ variables.packageManager }} run build
    ${{ if variables.runTests }}
    - name: Run tests
      run: ${{ variables.packageManager }} run test
    ${{ endif }}
    ${{ endif }}
""",
)

WORKFLOW_TEMPLATES: Mapping[str, WorkflowTemplate] = MappingProxyType(
    {template.id: template for template in (NODEJS_CICD, JAVA_GRADLE, GO, POSTGRES, MONOREPO)}
)


def get_template(template_id: str) -> Optional[WorkflowTemplate]:
    return WORKFLOW_TEMPLATES.get(template_id)


def list_templates() -> list[WorkflowTemplate]:
    return list(WORKFLOW_TEMPLATES.values())
