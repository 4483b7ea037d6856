"""Schema v1 - Initial database schema.

This version includes tables for:
- Customer and admin accounts
- Maps and the customer/map ownership link
- Zones drawn on maps
"""

schema = {
    'version': 1,
    'tables': [
        {
            'name': 'customer',
            'columns': [
                {'name': 'customer_id', 'type': 'SERIAL', 'primary_key': True},
                {'name': 'first_name', 'type': 'VARCHAR(100)', 'nullable': False},
                {'name': 'last_name', 'type': 'VARCHAR(100)', 'nullable': False},
                {'name': 'email', 'type': 'VARCHAR(255)', 'nullable': False, 'unique': True},
                {'name': 'password_hash', 'type': 'VARCHAR(255)', 'nullable': False},
                {'name': 'registration_date', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
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
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
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
        }
    ],
    'triggers': [
        {
            'name': 'zones_set_updated_at',
            'function_name': 'set_updated_at',
            'table': 'zones',
            'timing': 'BEFORE',
            'events': ['UPDATE'],
            'function_body': '''
                BEGIN
                    NEW.updated_at = now();
                    RETURN NEW;
                END;
            '''
        }
    ]
}
