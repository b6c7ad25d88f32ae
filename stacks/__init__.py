"""CDK stacks for the notes application running on ECS Fargate.

The stacks are deployed in dependency order: base network and cluster,
serverless Aurora database, then the load-balanced service with its
autoscaling policy and CloudWatch dashboard.
"""
