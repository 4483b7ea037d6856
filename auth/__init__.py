"""Customer and admin account management.

This module provides:
1. Customer registration (optionally buying a package in the same transaction)
2. Customer login against bcrypt, base64 and plaintext stored credentials
3. Admin login (bcrypt only) and admin account creation

Returned account records never include the stored credential.
"""

import asyncio
import logging
from typing import Optional, Dict, Any, List

from asyncpg.pool import Pool
from asyncpg.exceptions import UniqueViolationError

from database import acquire
from database.exceptions import DatabaseError
from maps import MapManager
from orders import PackageNotFoundError, ORDER_COLUMNS
from .credentials import verify_password, hash_password, LEGACY_VERIFIERS, STRONG_VERIFIERS

# Configure logging
logger = logging.getLogger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password."
INVALID_ADMIN_CREDENTIALS_MESSAGE = "Invalid admin credentials."

CUSTOMER_COLUMNS = 'customer_id, first_name, last_name, email, registration_date'
ADMIN_COLUMNS = 'admin_id, email, first_name, last_name, last_login, created_at'

class AuthError(Exception):
    """Base exception for authentication errors."""
    pass

class CustomerValidationError(AuthError):
    """Raised when required account fields are missing or malformed."""
    pass

class EmailAlreadyRegisteredError(AuthError):
    """Raised when an account with the email already exists."""
    pass

class InvalidCredentialsError(AuthError):
    """Raised when login fails, whatever the reason."""
    def __init__(self, message: str = INVALID_CREDENTIALS_MESSAGE):
        super().__init__(message)

class CustomerNotFoundError(AuthError):
    """Raised when the requested customer does not exist."""
    pass

def normalize_email(email: Optional[str]) -> str:
    """Trim and lower-case an email address."""
    return (email or '').strip().lower()

def _require_login_fields(email: str, password: Optional[str]) -> None:
    if not email or not password:
        raise CustomerValidationError("Email and password are required.")

async def _hash(password: str) -> str:
    # bcrypt is CPU bound, keep it off the event loop
    try:
        return await asyncio.to_thread(hash_password, password)
    except ValueError as e:
        raise CustomerValidationError(str(e))

class CustomerManager:
    """Manages customer accounts."""

    def __init__(self, pool: Pool, acquire_timeout: Optional[float] = None) -> None:
        """Initialize customer manager.

        Args:
            pool: Database connection pool
            acquire_timeout: Seconds to wait for a pooled connection
        """
        self.pool = pool
        self.acquire_timeout = acquire_timeout

    async def register(
        self,
        first_name: str,
        last_name: str,
        email: str,
        password: str,
        package_id: Optional[int] = None
    ) -> Dict[str, Any]:
        """Register a new customer.

        When a package is given, the customer row and a completed order at
        the package's current price are written in one transaction.

        Args:
            first_name: Customer first name
            last_name: Customer last name
            email: Email address, stored trimmed and lower-cased
            password: Plaintext password, stored as a bcrypt hash
            package_id: Optional package to purchase on registration

        Returns:
            The new customer record; includes an `order` key when a
            package was purchased

        Raises:
            CustomerValidationError: If a required field is empty
            EmailAlreadyRegisteredError: If the email is already registered
            PackageNotFoundError: If the package does not exist or is inactive
        """
        first_name = (first_name or '').strip()
        last_name = (last_name or '').strip()
        email = normalize_email(email)

        if not (first_name and last_name and email and password):
            raise CustomerValidationError(
                "All fields (first_name, last_name, email, password) are required."
            )

        password_hash = await _hash(password)

        try:
            async with acquire(self.pool, self.acquire_timeout) as conn:
                async with conn.transaction():
                    customer = await conn.fetchrow(
                        f'''
                        INSERT INTO customer (first_name, last_name, email, password_hash)
                        VALUES ($1, $2, $3, $4)
                        RETURNING {CUSTOMER_COLUMNS}
                        ''',
                        first_name,
                        last_name,
                        email,
                        password_hash
                    )

                    order = None
                    if package_id is not None:
                        package = await conn.fetchrow(
                            'SELECT package_id, price FROM packages WHERE package_id = $1 AND active = true',
                            package_id
                        )
                        if not package:
                            raise PackageNotFoundError("Package not found or inactive.")

                        order = await conn.fetchrow(
                            f'''
                            INSERT INTO orders (customer_id, package_id, total, status)
                            VALUES ($1, $2, $3, 'completed')
                            RETURNING {ORDER_COLUMNS}
                            ''',
                            customer['customer_id'],
                            package['package_id'],
                            package['price']
                        )

            logger.info(f"Registered customer {customer['customer_id']}")
            result = dict(customer)
            if order is not None:
                result['order'] = dict(order)
            return result

        except UniqueViolationError:
            raise EmailAlreadyRegisteredError("Email already registered.")
        except (AuthError, PackageNotFoundError, DatabaseError):
            raise
        except Exception as e:
            logger.error(f"Error registering customer: {e}")
            raise DatabaseError(f"Failed to register customer: {e}")

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        """Authenticate a customer.

        Args:
            email: Email address, matched after normalization
            password: Plaintext password

        Returns:
            The customer record without credentials

        Raises:
            CustomerValidationError: If email or password is empty
            InvalidCredentialsError: If the email is unknown or the password is wrong
        """
        email = normalize_email(email)
        _require_login_fields(email, password)

        try:
            async with acquire(self.pool, self.acquire_timeout) as conn:
                row = await conn.fetchrow(
                    f'SELECT {CUSTOMER_COLUMNS}, password_hash FROM customer WHERE email = $1',
                    email
                )
        except DatabaseError:
            raise
        except Exception as e:
            logger.error(f"Error loading customer for login: {e}")
            raise DatabaseError(f"Failed to log in: {e}")

        if not row:
            raise InvalidCredentialsError()

        matched = await asyncio.to_thread(
            verify_password, row['password_hash'], password, LEGACY_VERIFIERS
        )
        if not matched:
            raise InvalidCredentialsError()

        customer = dict(row)
        del customer['password_hash']
        return customer

    async def get_customer(self, customer_id: int) -> Dict[str, Any]:
        """Get a customer by id.

        Raises:
            CustomerNotFoundError: If the customer does not exist
        """
        try:
            async with acquire(self.pool, self.acquire_timeout) as conn:
                row = await conn.fetchrow(
                    f'SELECT {CUSTOMER_COLUMNS} FROM customer WHERE customer_id = $1',
                    customer_id
                )
        except DatabaseError:
            raise
        except Exception as e:
            logger.error(f"Error getting customer {customer_id}: {e}")
            raise DatabaseError(f"Failed to get customer: {e}")

        if not row:
            raise CustomerNotFoundError(f"Customer {customer_id} not found")
        return dict(row)

    async def list_customers(self) -> List[Dict[str, Any]]:
        """List customers with their map count and current package, newest first."""
        try:
            async with acquire(self.pool, self.acquire_timeout) as conn:
                rows = await conn.fetch(
                    '''
                    SELECT
                        c.customer_id,
                        c.first_name,
                        c.last_name,
                        c.email,
                        c.registration_date,
                        (SELECT COUNT(*) FROM map m WHERE m.customer_id = c.customer_id) AS map_count,
                        (
                            SELECT p.name
                            FROM orders o
                            JOIN packages p ON p.package_id = o.package_id
                            WHERE o.customer_id = c.customer_id AND o.status = 'completed'
                            ORDER BY o.date_time DESC, o.id DESC
                            LIMIT 1
                        ) AS package_name
                    FROM customer c
                    ORDER BY c.registration_date DESC, c.customer_id DESC
                    '''
                )
                return [dict(row) for row in rows]
        except DatabaseError:
            raise
        except Exception as e:
            logger.error(f"Error listing customers: {e}")
            raise DatabaseError(f"Failed to list customers: {e}")

    async def list_maps_for_customer(self, customer_id: int) -> List[Dict[str, Any]]:
        """List a customer's maps with zone counts, newest first."""
        return await MapManager(self.pool, self.acquire_timeout).list_maps_for_customer(customer_id)

class AdminManager:
    """Manages admin accounts."""

    def __init__(self, pool: Pool, acquire_timeout: Optional[float] = None) -> None:
        """Initialize admin manager.

        Args:
            pool: Database connection pool
            acquire_timeout: Seconds to wait for a pooled connection
        """
        self.pool = pool
        self.acquire_timeout = acquire_timeout

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        """Authenticate an admin and stamp last_login.

        Only bcrypt stored credentials are accepted.

        Raises:
            CustomerValidationError: If email or password is empty
            InvalidCredentialsError: If the email is unknown or the password is wrong
        """
        email = normalize_email(email)
        _require_login_fields(email, password)

        try:
            async with acquire(self.pool, self.acquire_timeout) as conn:
                row = await conn.fetchrow(
                    'SELECT admin_id, password_hash FROM admin WHERE email = $1',
                    email
                )
                if not row:
                    raise InvalidCredentialsError(INVALID_ADMIN_CREDENTIALS_MESSAGE)

                matched = await asyncio.to_thread(
                    verify_password, row['password_hash'], password, STRONG_VERIFIERS
                )
                if not matched:
                    raise InvalidCredentialsError(INVALID_ADMIN_CREDENTIALS_MESSAGE)

                admin = await conn.fetchrow(
                    f'''
                    UPDATE admin SET last_login = now()
                    WHERE admin_id = $1
                    RETURNING {ADMIN_COLUMNS}
                    ''',
                    row['admin_id']
                )

            logger.info(f"Admin {admin['admin_id']} logged in")
            return dict(admin)

        except (AuthError, DatabaseError):
            raise
        except Exception as e:
            logger.error(f"Error during admin login: {e}")
            raise DatabaseError(f"Failed to log in: {e}")

    async def create_admin(
        self,
        email: str,
        password: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None
    ) -> Dict[str, Any]:
        """Create an admin account.

        Raises:
            CustomerValidationError: If email or password is empty
            EmailAlreadyRegisteredError: If an admin with the email exists
        """
        email = normalize_email(email)
        _require_login_fields(email, password)
        password_hash = await _hash(password)

        try:
            async with acquire(self.pool, self.acquire_timeout) as conn:
                admin = await conn.fetchrow(
                    f'''
                    INSERT INTO admin (email, password_hash, first_name, last_name)
                    VALUES ($1, $2, $3, $4)
                    RETURNING {ADMIN_COLUMNS}
                    ''',
                    email,
                    password_hash,
                    (first_name or '').strip() or None,
                    (last_name or '').strip() or None
                )
            logger.info(f"Created admin {admin['admin_id']}")
            return dict(admin)

        except UniqueViolationError:
            raise EmailAlreadyRegisteredError("Email already registered.")
        except DatabaseError:
            raise
        except Exception as e:
            logger.error(f"Error creating admin: {e}")
            raise DatabaseError(f"Failed to create admin: {e}")

__all__ = [
    'AuthError',
    'CustomerValidationError',
    'EmailAlreadyRegisteredError',
    'InvalidCredentialsError',
    'CustomerNotFoundError',
    'CustomerManager',
    'AdminManager',
    'normalize_email',
    'verify_password',
    'hash_password'
]
