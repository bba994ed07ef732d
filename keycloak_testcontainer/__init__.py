from keycloak_testcontainer.config import Config, KeycloakConfig, load_config
from keycloak_testcontainer.exceptions import KeycloakContainerException, ConfigurationException, \
    ContainerLaunchException, ContainerResolutionException, AdminClientException, \
    NetworkException, DecodeException, ClientNotFoundException
from keycloak_testcontainer.keycloak.admin import AdminClient
from keycloak_testcontainer.keycloak.container import KeycloakContainer, KeycloakContainerBuilder, \
    run_keycloak_container
from keycloak_testcontainer.keycloak.models import Token, Client
from keycloak_testcontainer.keycloak.request import LaunchRequest, ContainerFile
from keycloak_testcontainer.util.wait import WaitStrategy, HttpWaitStrategy, LogWaitStrategy, \
    AllWaitStrategy
