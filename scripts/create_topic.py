# scripts/create_topic.py
import os
from dotenv import load_dotenv
from kafka.admin import KafkaAdminClient, NewTopic

load_dotenv("env/.env")

brokers = os.getenv("KAFKA_BROKERS")
topic   = os.getenv("RATIO_TOPIC", "redbank-ratios")

if not brokers:
    raise SystemExit("Set KAFKA_BROKERS in env/.env")

print("→ Using brokers:", brokers)
admin = KafkaAdminClient(bootstrap_servers=brokers.split(","))

if topic not in admin.list_topics():
    # single account, single partition keeps ratios ordered
    admin.create_topics([NewTopic(name=topic, num_partitions=1, replication_factor=1)])
    print(f"🆕 Created topic {topic}")
else:
    print(f"ℹ️ Topic {topic} already exists")

admin.close()
