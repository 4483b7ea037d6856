"""Database schema management module.

This module handles database schema versioning, validation, and migrations.
It supports creating and updating tables, indexes, foreign keys, triggers
and seed rows.

A database that already holds the tables but no ``schema_version`` rows is
adopted in place: existing tables and constraints are left untouched and
only the missing objects are created.
"""
import importlib
import logging
from pathlib import Path
from typing import Dict, Any, List, Optional

from asyncpg.pool import Pool

from ..exceptions import DatabaseSchemaError

logger = logging.getLogger(__name__)

SCHEMA_DIR = Path(__file__).resolve().parent.parent / 'schema'
SCHEMA_PACKAGE = 'database.schema'

class SchemaManager:
    """Manages database schema versioning and migrations."""

    def __init__(self, pool: Pool, schema_dir: Optional[Path] = None) -> None:
        """Initialize schema manager.

        Args:
            pool: Database connection pool
            schema_dir: Directory containing schema version files
        """
        self.pool = pool
        self._schema_dir = Path(schema_dir) if schema_dir else SCHEMA_DIR
        self.current_version = 0
        self._schema_files: Dict[int, Dict[str, Any]] = {}

    async def initialize(self) -> None:
        """Initialize schema management.

        Creates schema version table if it doesn't exist and runs any pending migrations.

        Raises:
            DatabaseSchemaError: If schema initialization fails or no valid schema files are found
        """
        try:
            # Create schema version table if it doesn't exist
            async with self.pool.acquire() as conn:
                await conn.execute('''
                    CREATE TABLE IF NOT EXISTS schema_version (
                        version INT8 PRIMARY KEY,
                        applied_at TIMESTAMP NOT NULL DEFAULT now()
                    )
                ''')

                # Get current version
                row = await conn.fetchrow(
                    'SELECT version FROM schema_version ORDER BY version DESC LIMIT 1'
                )
                self.current_version = row['version'] if row else 0

            # Load and validate all schema versions
            schema_files = self._load_schema_files()
            if not schema_files:
                logger.error("No valid schema files found in schema directory")
                raise DatabaseSchemaError("No valid schema files found in schema directory")

            # Apply any pending migrations
            await self._apply_migrations(schema_files)

        except DatabaseSchemaError:
            raise
        except Exception as e:
            logger.error(f"Schema initialization failed: {e}")
            raise DatabaseSchemaError(f"Failed to initialize schema: {e}")

    def _load_schema_files(self) -> Dict[int, Dict[str, Any]]:
        """Load all schema version files.

        Returns:
            Dict mapping version numbers to schema definitions
        """
        schema_files = {}

        if not self._schema_dir.exists():
            return schema_files

        # Load all vX.py files
        for file in self._schema_dir.glob('v*.py'):
            try:
                version = int(file.stem[1:])  # Extract number from vX.py
            except ValueError:
                logger.warning(f"Invalid schema filename: {file}")
                continue

            try:
                module = importlib.import_module(f"{SCHEMA_PACKAGE}.{file.stem}")
            except ImportError as e:
                logger.error(f"Failed to import schema {file}: {e}")
                raise DatabaseSchemaError(f"Failed to import schema {file}: {e}")

            if not hasattr(module, 'schema'):
                raise DatabaseSchemaError(
                    f"Schema file {file} missing 'schema' definition"
                )

            schema = module.schema
            if schema['version'] != version:
                raise DatabaseSchemaError(
                    f"Schema version mismatch in {file}: "
                    f"Expected v{version}, got v{schema['version']}"
                )

            schema_files[version] = schema

        self._schema_files = dict(sorted(schema_files.items()))
        return self._schema_files

    async def _apply_migrations(self, schema_files: Dict[int, Dict[str, Any]]) -> None:
        """Apply any pending schema migrations.

        Args:
            schema_files: Dict mapping version numbers to schema definitions
        """
        if not schema_files:
            return

        latest_version = max(schema_files.keys())
        if self.current_version >= latest_version:
            logger.info("Schema is up to date")
            return

        logger.info(
            f"Updating schema from version {self.current_version} to {latest_version}"
        )

        try:
            async with self.pool.acquire() as conn:
                # If this is a fresh install (version 0), create all tables
                if self.current_version == 0:
                    await self._create_fresh_schema(conn, schema_files)
                else:
                    # Apply incremental migrations for each version
                    for version in range(self.current_version + 1, latest_version + 1):
                        if version in schema_files:
                            schema = schema_files[version]
                            await self._apply_version_migrations(conn, schema)
                            for trigger in schema.get('triggers', []):
                                await self._create_trigger(conn, trigger)
                            await self._apply_seed(conn, schema)

                            # Update schema version after each successful migration
                            await conn.execute(
                                'INSERT INTO schema_version (version) VALUES ($1)',
                                version
                            )
                            logger.info(f"Successfully migrated to version {version}")

        except Exception as e:
            logger.error(f"Schema migration failed: {e}")
            raise DatabaseSchemaError(f"Failed to apply schema migrations: {e}")

    async def _create_fresh_schema(self, conn, schema_files: Dict[int, Dict[str, Any]]) -> None:
        """Create a fresh schema installation from the latest version.

        Args:
            conn: Database connection
            schema_files: Dict mapping version numbers to schema definitions
        """
        schema = schema_files[max(schema_files.keys())]

        # Create all tables without foreign keys first
        for table in schema.get('tables', []):
            await self._create_table(conn, table)

        # Tables that already existed may predate newer columns
        for version in sorted(schema_files):
            await self._apply_version_migrations(conn, schema_files[version])

        # Add foreign keys and indexes
        for table in schema.get('tables', []):
            await self._add_constraints(conn, table)

        # Create triggers and functions
        for trigger in schema.get('triggers', []):
            await self._create_trigger(conn, trigger)

        await self._apply_seed(conn, schema)

        # Update schema version
        await conn.execute(
            'INSERT INTO schema_version (version) VALUES ($1)',
            schema['version']
        )
        logger.info(f"Successfully created fresh schema version {schema['version']}")

    async def _execute_ddl(self, conn, sql: str, description: str) -> bool:
        """Run one DDL statement, skipping objects that already exist.

        Returns:
            True if the statement was applied, False if the object existed
        """
        try:
            await conn.execute(sql)
            logger.info(description)
            return True
        except Exception as e:
            if 'already exists' not in str(e):
                raise
            logger.debug(f"Skipping existing object: {str(e)}")
            return False

    async def _apply_version_migrations(self, conn, schema: Dict[str, Any]) -> None:
        """Apply migrations for a specific version.

        Args:
            conn: Database connection
            schema: Schema definition for this version
        """
        for migration in schema.get('migrations', []):
            await self._execute_ddl(
                conn, migration, f"Applied migration for version {schema['version']}"
            )

    async def _apply_seed(self, conn, schema: Dict[str, Any]) -> None:
        """Insert the rows a schema version ships with.

        Seed statements must be idempotent (``ON CONFLICT DO NOTHING``).
        """
        for statement in schema.get('seed', []):
            await conn.execute(statement)
        if schema.get('seed'):
            logger.info(f"Applied seed data for version {schema['version']}")

    async def _create_table(self, conn, table: Dict[str, Any]) -> None:
        """Create a single table without foreign keys.

        Args:
            conn: Database connection
            table: Table definition dictionary
        """
        columns = []
        constraints = []

        for col in table['columns']:
            col_def = f"{col['name']} {col['type']}"

            if col.get('primary_key'):
                constraints.append(f"PRIMARY KEY ({col['name']})")
            elif col.get('unique'):
                constraints.append(f"UNIQUE ({col['name']})")

            if 'default' in col:
                col_def += f" DEFAULT {col['default']}"

            if col.get('nullable') is False:
                col_def += " NOT NULL"

            columns.append(col_def)

        # Add composite primary key if specified
        if isinstance(table.get('primary_key'), list):
            constraints.append(
                f"PRIMARY KEY ({', '.join(table['primary_key'])})"
            )

        # Combine columns and constraints
        table_def = ', '.join(columns + constraints)

        await self._execute_ddl(
            conn,
            f'''
                CREATE TABLE {table['name']} (
                    {table_def}
                )
            ''',
            f"Created table {table['name']}"
        )

    async def _foreign_key_exists(self, conn, table: str, columns: List[str]) -> bool:
        """Check whether any foreign key already covers these columns."""
        return await conn.fetchval(
            '''
            SELECT EXISTS (
                SELECT 1
                FROM information_schema.table_constraints tc
                JOIN information_schema.key_column_usage kcu
                    ON tc.constraint_name = kcu.constraint_name
                    AND tc.table_schema = kcu.table_schema
                WHERE tc.constraint_type = 'FOREIGN KEY'
                AND tc.table_schema = 'public'
                AND tc.table_name = $1
                AND kcu.column_name = ANY($2::text[])
            )
            ''',
            table,
            columns
        )

    async def _add_constraints(self, conn, table: Dict[str, Any]) -> None:
        """Add foreign keys and indexes to a table.

        Args:
            conn: Database connection
            table: Table definition dictionary
        """
        # Add foreign key constraints
        for fk in table.get('foreign_keys', []):
            if await self._foreign_key_exists(conn, table['name'], fk['columns']):
                logger.debug(f"Foreign key on {table['name']}({', '.join(fk['columns'])}) already exists")
                continue
            on_delete = f" ON DELETE {fk['on_delete']}" if 'on_delete' in fk else ''
            await self._execute_ddl(
                conn,
                f'''
                    ALTER TABLE {table['name']}
                    ADD CONSTRAINT fk_{table['name']}_{fk['columns'][0]}
                    FOREIGN KEY ({', '.join(fk['columns'])})
                    REFERENCES {fk['references']}{on_delete}
                ''',
                f"Added foreign key constraint to {table['name']} "
                f"referencing {fk['references']}"
            )

        # Create indexes
        for idx in table.get('indexes', []):
            unique = 'UNIQUE ' if idx.get('unique') else ''
            where = f" WHERE {idx['where']}" if 'where' in idx else ''
            await self._execute_ddl(
                conn,
                f'''
                    CREATE {unique}INDEX {idx['name']}
                    ON {table['name']}({', '.join(idx['columns'])})
                    {where}
                ''',
                f"Created index {idx['name']} on {table['name']}"
            )

    async def _create_trigger(self, conn, trigger: Dict[str, Any]) -> None:
        """Create a trigger function and trigger.

        Args:
            conn: Database connection
            trigger: Trigger definition dictionary
        """
        # Create function
        await conn.execute(f'''
            CREATE OR REPLACE FUNCTION {trigger['function_name']}()
            RETURNS TRIGGER
            AS $${trigger['function_body']}$$
            LANGUAGE plpgsql;
        ''')
        logger.info(f"Created trigger function {trigger['function_name']}")

        # Create trigger
        await self._execute_ddl(
            conn,
            f'''
                CREATE TRIGGER {trigger['name']}
                {trigger['timing']} {' OR '.join(trigger['events'])} ON {trigger['table']}
                FOR EACH ROW
                EXECUTE FUNCTION {trigger['function_name']}();
            ''',
            f"Created trigger {trigger['name']} on {trigger['table']}"
        )
