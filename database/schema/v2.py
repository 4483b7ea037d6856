"""Schema v2 - Packages and orders.

Changes from v1:
- Add packages table (purchasable map allowances) with default packages
- Add orders table linking customers to packages
- Add updated_at to customer and map
"""

_SET_UPDATED_AT = '''
    BEGIN
        NEW.updated_at = now();
        RETURN NEW;
    END;
'''

def _updated_at_trigger(table):
    return {
        'name': f'{table}_set_updated_at',
        'function_name': 'set_updated_at',
        'table': table,
        'timing': 'BEFORE',
        'events': ['UPDATE'],
        'function_body': _SET_UPDATED_AT
    }

schema = {
    'version': 2,
    'tables': [
        {
            'name': 'customer',
            'columns': [
                {'name': 'customer_id', 'type': 'SERIAL', 'primary_key': True},
                {'name': 'first_name', 'type': 'VARCHAR(100)', 'nullable': False},
                {'name': 'last_name', 'type': 'VARCHAR(100)', 'nullable': False},
                {'name': 'email', 'type': 'VARCHAR(255)', 'nullable': False, 'unique': True},
                {'name': 'password_hash', 'type': 'VARCHAR(255)', 'nullable': False},
                {'name': 'registration_date', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ]
        },
        {
            'name': 'admin',
            'columns': [
                {'name': 'admin_id', 'type': 'SERIAL', 'primary_key': True},
                {'name': 'email', 'type': 'VARCHAR(255)', 'nullable': False, 'unique': True},
                {'name': 'password_hash', 'type': 'VARCHAR(255)', 'nullable': False},
                {'name': 'first_name', 'type': 'VARCHAR(100)'},
                {'name': 'last_name', 'type': 'VARCHAR(100)'},
                {'name': 'last_login', 'type': 'TIMESTAMP'},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ]
        },
        {
            'name': 'map',
            'columns': [
                {'name': 'map_id', 'type': 'SERIAL', 'primary_key': True},
                {'name': 'title', 'type': 'VARCHAR(255)', 'nullable': False},
                {'name': 'description', 'type': 'TEXT'},
                {'name': 'map_code', 'type': 'VARCHAR(64)', 'unique': True},
                {'name': 'customer_id', 'type': 'INTEGER', 'nullable': False},
                {'name': 'country', 'type': 'VARCHAR(100)'},
                {'name': 'map_data', 'type': 'JSONB', 'default': "'{}'::jsonb"},
                {'name': 'map_bounds', 'type': 'JSONB', 'default': "'{}'::jsonb"},
                {'name': 'active', 'type': 'BOOLEAN', 'default': 'true'},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'foreign_keys': [
                {'columns': ['customer_id'], 'references': 'customer(customer_id)', 'on_delete': 'CASCADE'}
            ],
            'indexes': [
                {'name': 'idx_map_customer', 'columns': ['customer_id']}
            ]
        },
        {
            'name': 'customer_map',
            'columns': [
                {'name': 'customer_id', 'type': 'INTEGER', 'nullable': False},
                {'name': 'map_id', 'type': 'INTEGER', 'nullable': False},
                {'name': 'access_level', 'type': 'VARCHAR(20)', 'default': "'owner'"},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'primary_key': ['customer_id', 'map_id'],
            'foreign_keys': [
                {'columns': ['customer_id'], 'references': 'customer(customer_id)', 'on_delete': 'CASCADE'},
                {'columns': ['map_id'], 'references': 'map(map_id)', 'on_delete': 'CASCADE'}
            ]
        },
        {
            'name': 'zones',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'map_id', 'type': 'INTEGER', 'nullable': False},
                {'name': 'customer_id', 'type': 'INTEGER'},
                {'name': 'name', 'type': 'VARCHAR(255)', 'nullable': False},
                {'name': 'color', 'type': 'VARCHAR(32)', 'nullable': False},
                {'name': 'coordinates', 'type': 'JSONB', 'nullable': False},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'foreign_keys': [
                {'columns': ['map_id'], 'references': 'map(map_id)', 'on_delete': 'CASCADE'},
                {'columns': ['customer_id'], 'references': 'customer(customer_id)', 'on_delete': 'SET NULL'}
            ],
            'indexes': [
                {'name': 'idx_zones_map', 'columns': ['map_id', 'created_at']}
            ]
        },
        {
            'name': 'packages',
            'columns': [
                {'name': 'package_id', 'type': 'SERIAL', 'primary_key': True},
                {'name': 'name', 'type': 'VARCHAR(100)', 'nullable': False, 'unique': True},
                {'name': 'price', 'type': 'NUMERIC(10,2)', 'nullable': False, 'default': '0'},
                {'name': 'allowed_maps', 'type': 'INTEGER', 'nullable': False, 'default': '1'},
                {'name': 'priority', 'type': 'INTEGER', 'nullable': False, 'default': '0'},
                {'name': 'active', 'type': 'BOOLEAN', 'nullable': False, 'default': 'true'},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'indexes': [
                {'name': 'idx_packages_active', 'columns': ['priority'], 'where': 'active = true'}
            ]
        },
        {
            'name': 'orders',
            'columns': [
                {'name': 'id', 'type': 'SERIAL', 'primary_key': True},
                {'name': 'customer_id', 'type': 'INTEGER', 'nullable': False},
                {'name': 'package_id', 'type': 'INTEGER', 'nullable': False},
                {'name': 'date_time', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'},
                {'name': 'total', 'type': 'NUMERIC(10,2)', 'nullable': False},
                {'name': 'status', 'type': 'VARCHAR(20)', 'nullable': False, 'default': "'pending'"},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'foreign_keys': [
                {'columns': ['customer_id'], 'references': 'customer(customer_id)', 'on_delete': 'CASCADE'},
                {'columns': ['package_id'], 'references': 'packages(package_id)'}
            ],
            'indexes': [
                {'name': 'idx_orders_customer', 'columns': ['customer_id', 'date_time']},
                {'name': 'idx_orders_package', 'columns': ['package_id']}
            ]
        }
    ],
    'migrations': [
        # Migration SQL from v1 to v2
        '''
        ALTER TABLE customer ADD COLUMN IF NOT EXISTS updated_at TIMESTAMP NOT NULL DEFAULT now();
        ALTER TABLE map ADD COLUMN IF NOT EXISTS updated_at TIMESTAMP NOT NULL DEFAULT now();
        ALTER TABLE map ADD COLUMN IF NOT EXISTS country VARCHAR(100);
        ALTER TABLE map ADD COLUMN IF NOT EXISTS active BOOLEAN DEFAULT true;
        ALTER TABLE map ADD COLUMN IF NOT EXISTS map_bounds JSONB DEFAULT '{}'::jsonb;
        ''',
        '''
        CREATE TABLE IF NOT EXISTS packages (
            package_id SERIAL PRIMARY KEY,
            name VARCHAR(100) NOT NULL UNIQUE,
            price NUMERIC(10,2) NOT NULL DEFAULT 0,
            allowed_maps INTEGER NOT NULL DEFAULT 1,
            priority INTEGER NOT NULL DEFAULT 0,
            active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMP NOT NULL DEFAULT now(),
            updated_at TIMESTAMP NOT NULL DEFAULT now()
        );
        CREATE INDEX IF NOT EXISTS idx_packages_active ON packages(priority) WHERE active = true;
        ''',
        '''
        CREATE TABLE IF NOT EXISTS orders (
            id SERIAL PRIMARY KEY,
            customer_id INTEGER NOT NULL REFERENCES customer(customer_id) ON DELETE CASCADE,
            package_id INTEGER NOT NULL REFERENCES packages(package_id),
            date_time TIMESTAMP NOT NULL DEFAULT now(),
            total NUMERIC(10,2) NOT NULL,
            status VARCHAR(20) NOT NULL DEFAULT 'pending',
            created_at TIMESTAMP NOT NULL DEFAULT now(),
            updated_at TIMESTAMP NOT NULL DEFAULT now()
        );
        CREATE INDEX IF NOT EXISTS idx_orders_customer ON orders(customer_id, date_time);
        CREATE INDEX IF NOT EXISTS idx_orders_package ON orders(package_id);
        '''
    ],
    'triggers': [
        _updated_at_trigger('customer'),
        _updated_at_trigger('map'),
        _updated_at_trigger('zones'),
        _updated_at_trigger('packages'),
        _updated_at_trigger('orders')
    ],
    'seed': [
        '''
        INSERT INTO packages (name, price, allowed_maps, priority, active)
        VALUES
            ('free', 0.00, 1, 1, true),
            ('starter', 5.00, 3, 2, true),
            ('premium', 15.00, 30, 3, true)
        ON CONFLICT (name) DO NOTHING
        '''
    ]
}
