"""Runtime configuration for the e2e harness"""

import os
from typing import Optional


class Config:
    """Configuration class with environment-driven defaults"""
    def __init__(self):
        # External tools, looked up on PATH unless given as paths
        self.generator_tool = os.getenv('GENERATOR_TOOL', 'kedge')
        self.kubectl_tool = os.getenv('KUBECTL_TOOL', 'kubectl')

        # Cluster access
        self.kubeconfig_path: Optional[str] = os.getenv('KUBECONFIG')
        self.k8s_verify_ssl: Optional[bool] = self._get_verify_ssl_setting()

        # Test suite
        self.project_path = os.getenv('PROJECT_PATH', '$GOPATH/src/github.com/kedgeproject/kedge/')
        self.suite_file: Optional[str] = os.getenv('SUITE_FILE')

        # Orchestration
        self.run_policy = os.getenv('RUN_POLICY', 'isolate')
        self.max_parallel = int(os.getenv('MAX_PARALLEL', '0'))

        # Timeouts in seconds, 0 waits forever
        self.namespace_ready_timeout = float(os.getenv('NAMESPACE_READY_TIMEOUT', '60'))
        self.pod_ready_timeout = float(os.getenv('POD_READY_TIMEOUT', '600'))
        self.endpoint_ready_timeout = float(os.getenv('ENDPOINT_READY_TIMEOUT', '300'))
        self.command_timeout = float(os.getenv('COMMAND_TIMEOUT', '300'))

        # Polling
        self.poll_interval = float(os.getenv('POLL_INTERVAL', '1.0'))
        self.http_timeout = float(os.getenv('HTTP_TIMEOUT', '5.0'))

        # Logging
        self.log_file = os.getenv('LOG_FILE', 'kedge_e2e.log')
        self.log_level = os.getenv('LOG_LEVEL', 'INFO')

    def _get_verify_ssl_setting(self) -> Optional[bool]:
        """Get SSL verification setting from environment"""
        for env_var in ['K8S_VERIFY', 'VERIFY_SSL']:
            val = os.getenv(env_var)
            if val is not None:
                val_lower = val.strip().lower()
                if val_lower in ('true', '1', 'yes'):
                    return True
                if val_lower in ('false', '0', 'no'):
                    return False
        return None  # Not set, keep kubeconfig behaviour
