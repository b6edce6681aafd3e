"""SNMP v1/v2c client sessions, a trap and inform receiver, data types, trace hooks and BER encoding."""