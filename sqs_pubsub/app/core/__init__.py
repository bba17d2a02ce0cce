SERVICE_NAME = "sqs-pubsub"
