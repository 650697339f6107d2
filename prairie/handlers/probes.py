import datetime
import kopf
from prairie.handlers.homeagent import tracked_home_agents
from prairie.resources import HomeAgent


@kopf.on.probe(id="now")
def heartbeat(**kwargs):
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


@kopf.on.probe(id="trackedHomeAgents")
def count_tracked_home_agents(**kwargs):
    """HomeAgents reconciled since startup and not deleted since."""
    return len(tracked_home_agents)


@kopf.on.probe(id="sensors")
def sensor_backends(**kwargs):
    return len(HomeAgent.sensor)
